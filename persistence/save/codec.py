"""
Save file codec.

A raw save payload is exactly two blocks:

    <main block> + "||" + <scene block>

The main block is the SaveHeader (main data and player data); the scene
block holds every SceneData. A FormatHandler decides how each block is
written. Any "||" inside a block is replaced by "*DOUBLEPIPE*" before the
blocks are joined, and put back immediately after the split, so the split
is always unambiguous. Handlers never produce a block that starts or ends
with "|".

Compressed payloads are gzip behind a little-endian length prefix, then
base64. Base64 never contains "|", so a payload without the divider is
treated as compressed.

Decoding never raises. Any failure is logged and returns None.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import logging
import struct
import zlib
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from persistence.save.errors import DecodeError
from persistence.save.model import SaveDataModel, SaveHeader, SceneBlock, SceneData
from persistence.save.settings import SaveFormat

logger = logging.getLogger(__name__)

DIVIDER = "||"
DIVIDER_PLACEHOLDER = "*DOUBLEPIPE*"


class FormatHandler(ABC):
    """Writes and reads the two blocks of a save payload."""

    name: str = ""

    @abstractmethod
    def serialize_header(self, header: SaveHeader) -> str:
        ...

    @abstractmethod
    def deserialize_header(self, block: str) -> SaveHeader:
        """Raises DecodeError if the block cannot be read."""

    @abstractmethod
    def serialize_scenes(self, scenes: list[SceneData]) -> str:
        ...

    @abstractmethod
    def deserialize_scenes(self, block: str) -> list[SceneData]:
        """Raises DecodeError if the block cannot be read."""


class JsonFormatHandler(FormatHandler):
    """Human-readable JSON blocks."""

    name = "json"

    def serialize_header(self, header: SaveHeader) -> str:
        return header.model_dump_json()

    def deserialize_header(self, block: str) -> SaveHeader:
        try:
            return SaveHeader.model_validate_json(block)
        except ValidationError as e:
            raise DecodeError(f"Invalid main block: {e}") from e

    def serialize_scenes(self, scenes: list[SceneData]) -> str:
        return SceneBlock(scenes=scenes).model_dump_json()

    def deserialize_scenes(self, block: str) -> list[SceneData]:
        try:
            return SceneBlock.model_validate_json(block).scenes
        except ValidationError as e:
            raise DecodeError(f"Invalid scene block: {e}") from e


class BinaryFormatHandler(FormatHandler):
    """
    Compact framed blocks.

    Each block is a fixed header (magic, version, payload length) followed
    by the JSON payload, base64-encoded as a whole.
    """

    name = "binary"

    MAGIC = b"NGSV"
    VERSION = 1
    _HEADER = struct.Struct("<4sHI")

    def serialize_header(self, header: SaveHeader) -> str:
        return self._pack(header.model_dump_json().encode("utf-8"))

    def deserialize_header(self, block: str) -> SaveHeader:
        try:
            return SaveHeader.model_validate_json(self._unpack(block))
        except ValidationError as e:
            raise DecodeError(f"Invalid main block: {e}") from e

    def serialize_scenes(self, scenes: list[SceneData]) -> str:
        return self._pack(SceneBlock(scenes=scenes).model_dump_json().encode("utf-8"))

    def deserialize_scenes(self, block: str) -> list[SceneData]:
        try:
            return SceneBlock.model_validate_json(self._unpack(block)).scenes
        except ValidationError as e:
            raise DecodeError(f"Invalid scene block: {e}") from e

    def _pack(self, payload: bytes) -> str:
        frame = self._HEADER.pack(self.MAGIC, self.VERSION, len(payload)) + payload
        return base64.b64encode(frame).decode("ascii")

    def _unpack(self, block: str) -> bytes:
        try:
            frame = base64.b64decode(block, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Block is not base64: {e}") from e
        if len(frame) < self._HEADER.size:
            raise DecodeError("Block is truncated")

        magic, version, length = self._HEADER.unpack_from(frame)
        if magic != self.MAGIC:
            raise DecodeError(f"Bad magic {magic!r}")
        if version > self.VERSION:
            raise DecodeError(f"Unsupported block version {version}")
        payload = frame[self._HEADER.size:]
        if len(payload) != length:
            raise DecodeError(f"Expected {length} bytes, found {len(payload)}")
        return payload


_HANDLERS: dict[SaveFormat, type[FormatHandler]] = {
    SaveFormat.JSON: JsonFormatHandler,
    SaveFormat.BINARY: BinaryFormatHandler,
}


def get_format_handler(save_format: SaveFormat) -> FormatHandler:
    return _HANDLERS[save_format]()


def escape_block(block: str) -> str:
    return block.replace(DIVIDER, DIVIDER_PLACEHOLDER)


def unescape_block(block: str) -> str:
    return block.replace(DIVIDER_PLACEHOLDER, DIVIDER)


class SaveCodec:
    """
    Converts a SaveDataModel to and from raw save bytes.

    Usage:
        codec = SaveCodec(JsonFormatHandler(), compress=True)
        data = codec.encode(model)
        header = codec.extract_main_data(data)
        scenes = codec.extract_scene_data(data)
    """

    _LENGTH_PREFIX = struct.Struct("<I")

    def __init__(self, handler: FormatHandler | None = None, compress: bool = False):
        self.handler = handler or JsonFormatHandler()
        self.compress_output = compress

    # Encoding

    def serialize(self, model: SaveDataModel) -> str:
        """The uncompressed payload text."""
        main_block = self.handler.serialize_header(model.header)
        scene_block = self.handler.serialize_scenes(model.scene_data)
        return escape_block(main_block) + DIVIDER + escape_block(scene_block)

    def encode(self, model: SaveDataModel) -> bytes:
        text = self.serialize(model)
        if self.compress_output:
            return self.compress(text)
        return text.encode("utf-8")

    @classmethod
    def compress(cls, text: str) -> bytes:
        raw = text.encode("utf-8")
        packed = cls._LENGTH_PREFIX.pack(len(raw)) + gzip.compress(raw)
        return base64.b64encode(packed)

    @classmethod
    def decompress(cls, data: bytes) -> str:
        """Raises DecodeError if the data is not a compressed payload."""
        try:
            packed = base64.b64decode(data, validate=True)
            if len(packed) < cls._LENGTH_PREFIX.size:
                raise DecodeError("Compressed payload is truncated")
            (length,) = cls._LENGTH_PREFIX.unpack_from(packed)
            raw = gzip.decompress(packed[cls._LENGTH_PREFIX.size:])
        except (binascii.Error, ValueError, OSError, EOFError, zlib.error) as e:
            raise DecodeError(f"Cannot decompress payload: {e}") from e
        if len(raw) != length:
            raise DecodeError(f"Expected {length} bytes, found {len(raw)}")
        return raw.decode("utf-8")

    # Decoding

    def to_text(self, data: bytes | str | None) -> Optional[str]:
        """
        The uncompressed payload text, or None.

        Accepts either form: a payload containing the divider is raw,
        anything else is decompressed.
        """
        if not data:
            return None
        try:
            text = data if isinstance(data, str) else data.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Save data is not valid UTF-8")
            return None
        if DIVIDER in text:
            return text
        try:
            return self.decompress(text.encode("ascii"))
        except (DecodeError, UnicodeError) as e:
            logger.warning("Save data has no divider and is not compressed: %s", e)
            return None

    def split(self, data: bytes | str | None) -> Optional[tuple[str, str]]:
        """The two unescaped blocks, or None if there is no divider."""
        text = self.to_text(data)
        if text is None:
            return None
        main_block, sep, scene_block = text.partition(DIVIDER)
        if not sep:
            logger.warning("Save data is missing its divider")
            return None
        return unescape_block(main_block), unescape_block(scene_block)

    def extract_main_data(self, data: bytes | str | None) -> Optional[SaveHeader]:
        """Read only the main block."""
        blocks = self.split(data)
        if blocks is None:
            return None
        try:
            return self.handler.deserialize_header(blocks[0])
        except DecodeError as e:
            logger.warning("Cannot read main data: %s", e)
            return None

    def extract_scene_data(self, data: bytes | str | None) -> Optional[list[SceneData]]:
        """Read only the scene block."""
        blocks = self.split(data)
        if blocks is None:
            return None
        try:
            return self.handler.deserialize_scenes(blocks[1])
        except DecodeError as e:
            logger.warning("Cannot read scene data: %s", e)
            return None

    def decode(self, data: bytes | str | None) -> Optional[SaveDataModel]:
        header = self.extract_main_data(data)
        if header is None:
            return None
        scenes = self.extract_scene_data(data)
        if scenes is None:
            return None
        return SaveDataModel.from_parts(header, scenes)
