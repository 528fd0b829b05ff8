"""
Exception classes for S3 Auth Python SDK
"""

from typing import Optional, Dict, Any


class S3AuthSDKError(Exception):
    """Base exception for all S3 Auth SDK errors"""
    
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
    
    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (code: {self.error_code}, details: {self.details})"
        return f"{self.message} (code: {self.error_code})"
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}(message='{self.message}', code='{self.error_code}', details={self.details})"


class ValidationError(S3AuthSDKError):
    """Exception raised for empty required fields and out-of-range values"""
    pass


class FormatError(S3AuthSDKError):
    """Exception raised for unparsable timestamps or headers"""
    pass


class ConfigurationError(S3AuthSDKError):
    """Exception raised for missing access key, secret key or region"""
    pass


class InternalConsistencyError(S3AuthSDKError):
    """Exception raised when a step is invoked out of its required order"""
    pass


class SigningError(S3AuthSDKError):
    """Exception raised when signature computation fails unexpectedly"""
    pass
