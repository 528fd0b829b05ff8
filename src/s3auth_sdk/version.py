"""Version information for S3 Auth Python SDK"""

__version__ = "0.1.0"
