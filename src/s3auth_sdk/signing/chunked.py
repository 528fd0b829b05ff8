"""
Streaming (aws-chunked) payload signing

This module keeps the chunk signature chain of one streaming upload and
frames payload data into signed ``aws-chunked`` chunks:

    {hex-size};chunk-signature={signature}\\r\\n{data}\\r\\n

Each chunk signature covers the previous one, starting from the seed
signature of the request, and the chain ends with a zero-length chunk.
"""

import logging
import threading
from datetime import datetime
from typing import BinaryIO, Dict, Iterable, Iterator, Optional, Union

from ..exceptions import InternalConsistencyError, ValidationError
from .types import SigningContext, SigningErrorCodes, STREAMING_PAYLOAD
from .utils import sha256_hex
from .s3v4_signer import S3V4Signer

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

_CHUNK_SIGNATURE_FIELD = ";chunk-signature="
_SIGNATURE_LENGTH = 64
_CRLF = b"\r\n"

PayloadSource = Union[bytes, BinaryIO, Iterable[bytes]]


class ChunkSigner:
    """
    Chunk signature chain of a single streaming upload.

    Calls are serialized with a lock: signatures are produced strictly in
    the order chunks are handed in, matching the order of the byte stream.
    """

    def __init__(
        self,
        seed_signature: str,
        timestamp: datetime,
        region: str,
        secret_key: str,
        signer: Optional[S3V4Signer] = None
    ):
        """
        Initialize the chain from a seed signature.

        Args:
            seed_signature: Seed signature of the streaming request
            timestamp: Signing time of the streaming request
            region: Region
            secret_key: Secret key
            signer: Optional signer instance
        """
        if not seed_signature:
            raise ValidationError(
                "Seed signature is required to start a chunk chain",
                SigningErrorCodes.MISSING_PREVIOUS_SIGNATURE
            )

        self._signer = signer or S3V4Signer()
        self._timestamp = timestamp
        self._region = region
        self._secret_key = secret_key
        self._previous_signature = seed_signature
        self._chunk_count = 0
        self._closed = False
        self._lock = threading.Lock()

    @classmethod
    def from_context(cls, context: SigningContext, signer: Optional[S3V4Signer] = None) -> 'ChunkSigner':
        """
        Seed a chain from the signing context of a streaming request.

        Raises:
            ValidationError: If the context is not a streaming request
        """
        if context.payload_hash != STREAMING_PAYLOAD:
            raise ValidationError(
                f"Chunked uploads must use the {STREAMING_PAYLOAD} payload hash",
                SigningErrorCodes.INVALID_PAYLOAD_HASH,
                {"payload_hash": context.payload_hash}
            )

        signer = signer or S3V4Signer()
        seed = signer.seed_chunk_signature(context)
        return cls(seed, context.timestamp, context.region, context.secret_key, signer)

    @property
    def previous_signature(self) -> str:
        """Signature the next chunk will be chained to."""
        return self._previous_signature

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    @property
    def closed(self) -> bool:
        """True once the terminal zero-length chunk has been signed."""
        return self._closed

    def sign(self, chunk: bytes) -> str:
        """
        Sign the next chunk of data.

        An empty chunk is the terminal chunk and closes the chain.

        Args:
            chunk: Chunk data

        Returns:
            str: Hex chunk signature
        """
        return self.sign_hash(sha256_hex(chunk), final=len(chunk) == 0)

    def sign_hash(self, chunk_hash: str, final: bool = False) -> str:
        """
        Sign the next chunk given its SHA-256.

        Args:
            chunk_hash: Hex SHA-256 of the chunk data
            final: Whether this is the terminal chunk

        Returns:
            str: Hex chunk signature

        Raises:
            InternalConsistencyError: If the chain is already closed
        """
        with self._lock:
            if self._closed:
                raise InternalConsistencyError(
                    "Chunk chain is closed, the terminal chunk was already signed",
                    SigningErrorCodes.CHUNK_CHAIN_CLOSED,
                    {"chunk_count": self._chunk_count}
                )

            signature = self._signer.sign_chunk(
                chunk_hash,
                self._timestamp,
                self._region,
                self._secret_key,
                self._previous_signature
            )

            self._previous_signature = signature
            self._chunk_count += 1
            if final:
                self._closed = True

            return signature


class ChunkedPayloadEncoder:
    """
    Encoder producing a signed ``aws-chunked`` body.
    """

    def __init__(self, chunk_signer: ChunkSigner, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize encoder.

        Args:
            chunk_signer: Chain of the upload being encoded
            chunk_size: Size of every chunk except the last data chunk
        """
        _validate_chunk_size(chunk_size)
        self.chunk_signer = chunk_signer
        self.chunk_size = chunk_size

    def encode_chunk(self, data: bytes) -> bytes:
        """Sign and frame a single chunk."""
        data = _check_chunk_data(data)
        signature = self.chunk_signer.sign(data)
        header = f"{len(data):x}{_CHUNK_SIGNATURE_FIELD}{signature}".encode('ascii')
        return header + _CRLF + data + _CRLF

    def encode(self, payload: PayloadSource) -> Iterator[bytes]:
        """
        Encode a payload into signed chunks, ending with the terminal chunk.

        Args:
            payload: Bytes, a binary file object or an iterable of bytes

        Yields:
            bytes: Encoded chunks in upload order
        """
        for data in _iter_chunks(payload, self.chunk_size):
            yield self.encode_chunk(data)

        yield self.encode_chunk(b"")
        logger.debug(f"Encoded {self.chunk_signer.chunk_count} signed chunks")


def _validate_chunk_size(chunk_size: int) -> None:
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
        raise ValidationError(
            "Chunk size must be a positive integer",
            SigningErrorCodes.INVALID_CHUNK_SIZE,
            {"chunk_size": str(chunk_size)}
        )


def _check_chunk_data(data: object) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise ValidationError(
            f"Chunk data must be bytes, not {type(data).__name__}",
            SigningErrorCodes.INVALID_CHUNK_DATA,
            {"data_type": type(data).__name__}
        )
    return bytes(data)


def _iter_chunks(payload: PayloadSource, chunk_size: int) -> Iterator[bytes]:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        data = bytes(payload)
        for start in range(0, len(data), chunk_size):
            yield data[start:start + chunk_size]
        return

    if isinstance(payload, str):
        _check_chunk_data(payload)

    if hasattr(payload, 'read'):
        while True:
            data = payload.read(chunk_size)
            if not data:
                return
            yield _check_chunk_data(data)

    buffer = b""
    for piece in payload:
        buffer += _check_chunk_data(piece)
        while len(buffer) >= chunk_size:
            yield buffer[:chunk_size]
            buffer = buffer[chunk_size:]
    if buffer:
        yield buffer


def _encoded_chunk_length(size: int) -> int:
    return (
        len(f"{size:x}") + len(_CHUNK_SIGNATURE_FIELD) + _SIGNATURE_LENGTH
        + len(_CRLF) + size + len(_CRLF)
    )


def chunked_content_length(decoded_length: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """
    Compute the ``Content-Length`` of an aws-chunked body.

    Args:
        decoded_length: Length of the payload data
        chunk_size: Chunk size used by the encoder

    Returns:
        int: Encoded body length including the terminal chunk
    """
    _validate_chunk_size(chunk_size)
    if decoded_length < 0:
        raise ValidationError(
            "Decoded content length cannot be negative",
            SigningErrorCodes.INVALID_CHUNK_SIZE,
            {"decoded_length": decoded_length}
        )

    full_chunks, remainder = divmod(decoded_length, chunk_size)
    length = full_chunks * _encoded_chunk_length(chunk_size)
    if remainder:
        length += _encoded_chunk_length(remainder)
    return length + _encoded_chunk_length(0)


def streaming_headers(decoded_length: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Dict[str, str]:
    """
    Headers a streaming upload has to carry.

    Returns:
        dict: ``content-encoding``, ``content-length``,
        ``x-amz-content-sha256`` and ``x-amz-decoded-content-length``
    """
    return {
        'content-encoding': 'aws-chunked',
        'content-length': str(chunked_content_length(decoded_length, chunk_size)),
        'x-amz-content-sha256': STREAMING_PAYLOAD,
        'x-amz-decoded-content-length': str(decoded_length),
    }
