# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Audio metadata reader

Decodes ID3v2 (2.2, 2.3, 2.4) frames and the ID3v1 trailer of MP3 files
into a MetadataModel, plus a few read-only facts taken from the first
MPEG audio frame header.

Copyright 2025 DNAi inc.
"""

import asyncio
import logging
import re
import struct
from typing import Dict, List, Optional, Tuple

from dnmeta.exceptions import MalformedContainerError
from dnmeta.model import MetadataField, MetadataModel, file_name_field
from dnmeta.tag_dictionary import (
    AUDIO,
    BASIC,
    ID3,
    STREAM,
    TAG_DICTIONARY,
    TagDictionary,
)

logger = logging.getLogger(__name__)

ID3V1_SIZE = 128

# How far past the tag to look for the first MPEG frame
MAX_SYNC_SCAN = 64 * 1024

ID3V1_GENRES = (
    "Blues", "Classic Rock", "Country", "Dance", "Disco", "Funk", "Grunge",
    "Hip-Hop", "Jazz", "Metal", "New Age", "Oldies", "Other", "Pop", "R&B",
    "Rap", "Reggae", "Rock", "Techno", "Industrial", "Alternative", "Ska",
    "Death Metal", "Pranks", "Soundtrack", "Euro-Techno", "Ambient",
    "Trip-Hop", "Vocal", "Jazz+Funk", "Fusion", "Trance", "Classical",
    "Instrumental", "Acid", "House", "Game", "Sound Clip", "Gospel", "Noise",
    "AlternRock", "Bass", "Soul", "Punk", "Space", "Meditative",
    "Instrumental Pop", "Instrumental Rock", "Ethnic", "Gothic", "Darkwave",
    "Techno-Industrial", "Electronic", "Pop-Folk", "Eurodance", "Dream",
    "Southern Rock", "Comedy", "Cult", "Gangsta", "Top 40", "Christian Rap",
    "Pop/Funk", "Jungle", "Native American", "Cabaret", "New Wave",
    "Psychadelic", "Rave", "Showtunes", "Trailer", "Lo-Fi", "Tribal",
    "Acid Punk", "Acid Jazz", "Polka", "Retro", "Musical", "Rock & Roll",
    "Hard Rock",
)

# ID3v1 field -> ID3v2 frame carrying the same field
ID3V1_FRAMES = {
    'title': 'TIT2',
    'artist': 'TPE1',
    'album': 'TALB',
    'year': 'TYER',
    'comment': 'COMM',
    'track': 'TRCK',
    'genre': 'TCON',
}

TEXT_ENCODINGS = {
    0: 'latin-1',
    1: 'utf-16',
    2: 'utf-16-be',
    3: 'utf-8',
}

_FRAME_ID = re.compile(rb'^[A-Z0-9]{3,4}$')
_GENRE_REF = re.compile(r'^\((\d+)\)(.*)$')


def _synchsafe(data: bytes) -> int:
    return (data[0] << 21) | (data[1] << 14) | (data[2] << 7) | data[3]


def _remove_unsynchronisation(data: bytes) -> bytes:
    return data.replace(b'\xff\x00', b'\xff')


def _decode_strings(encoding: int, data: bytes) -> List[str]:
    """Decode an ID3 text payload into its NUL-separated strings."""
    codec = TEXT_ENCODINGS.get(encoding)
    if codec is None:
        raise ValueError(f"unknown text encoding {encoding}")
    if codec.startswith('utf-16') and len(data) % 2:
        data = data[:-1]
    text = data.decode(codec, errors='replace')
    return [part.replace('\ufeff', '').strip() for part in text.split('\x00')]


class AudioMetadataReader:
    """
    Reads ID3 tags into a MetadataModel.
    """

    def __init__(self, dictionary: TagDictionary = TAG_DICTIONARY):
        self.dictionary = dictionary

    async def parse(self, file_data: bytes, filename: str = '') -> MetadataModel:
        """
        Parse audio bytes without blocking the event loop.
        
        Raises:
            MalformedContainerError: If the file carries no readable ID3 tag
        """
        return await asyncio.to_thread(self.parse_sync, file_data, filename)

    def parse_sync(self, file_data: bytes, filename: str = '') -> MetadataModel:
        try:
            frames, tag_end = self._read_id3v2(file_data)
            v1_fields = self._read_id3v1(file_data)
            if not frames and tag_end == 0 and v1_fields is None:
                raise MalformedContainerError("Could not read audio tags: no ID3 tag found")
            return self._build_model(file_data, filename, frames, tag_end, v1_fields)
        except MalformedContainerError:
            raise
        except (struct.error, IndexError, ValueError, UnicodeError, ArithmeticError) as e:
            raise MalformedContainerError(f"Could not read audio tags: {str(e)}") from e

    # ------------------------------------------------------------------
    # Model construction
    # ------------------------------------------------------------------

    def _build_model(self, file_data: bytes, filename: str, frames: List[Tuple[str, bytes]],
                     tag_end: int, v1_fields: Optional[Dict[str, str]]) -> MetadataModel:
        model = MetadataModel({BASIC: [], AUDIO: []})
        model.add_field(file_name_field(filename))
        seen = set()

        for frame_id, payload in frames:
            descriptor = self.dictionary.resolve_by_external_id(ID3, frame_id)
            if descriptor is None or descriptor.key in seen:
                continue
            try:
                value = self._frame_value(frame_id, payload)
            except (ValueError, IndexError) as e:
                logger.debug("Skipping unreadable %s frame: %s", frame_id, e)
                continue
            if not value:
                continue
            value = self._flatten(descriptor.key, value)
            seen.add(descriptor.key)
            model.add_field(MetadataField(
                key=descriptor.key,
                label=descriptor.label,
                value=value,
                category=descriptor.category,
                editable=descriptor.editable,
            ))

        for name, text in (v1_fields or {}).items():
            descriptor = self.dictionary.resolve_by_external_id(ID3, ID3V1_FRAMES[name])
            if descriptor is None or descriptor.key in seen or not text:
                continue
            seen.add(descriptor.key)
            model.add_field(MetadataField(
                key=descriptor.key,
                label=descriptor.label,
                value=self._flatten(descriptor.key, text),
                category=descriptor.category,
                editable=descriptor.editable,
            ))

        audio_end = len(file_data) - (ID3V1_SIZE if v1_fields is not None else 0)
        for key, value in self._stream_info(file_data, tag_end, audio_end).items():
            descriptor = self.dictionary.resolve_by_external_id(STREAM, key)
            model.add_field(MetadataField(
                key=descriptor.key,
                label=descriptor.label,
                value=value,
                category=descriptor.category,
                editable=descriptor.editable,
            ))
        return model

    def _frame_value(self, frame_id: str, payload: bytes) -> str:
        if not payload:
            return ''
        encoding = payload[0]
        if frame_id in ('COMM', 'COM'):
            # encoding, 3-byte language, description, text
            parts = _decode_strings(encoding, payload[4:])
            return ' '.join(p for p in parts[1:] if p) if len(parts) > 1 else ''
        return '; '.join(p for p in _decode_strings(encoding, payload[1:]) if p)

    @staticmethod
    def _flatten(key: str, value: str) -> str:
        """Reduce structured values to a display string."""
        if key == 'genre':
            return '; '.join(AudioMetadataReader._genre_name(v.strip()) for v in value.split(';'))
        if key == 'year':
            match = re.match(r'^(\d{4})', value)
            return match.group(1) if match else value
        return value

    @staticmethod
    def _genre_name(value: str) -> str:
        match = _GENRE_REF.match(value)
        if match:
            index, refinement = int(match.group(1)), match.group(2).strip()
            if refinement:
                return refinement
            return ID3V1_GENRES[index] if index < len(ID3V1_GENRES) else value
        if value.isdigit() and int(value) < len(ID3V1_GENRES):
            return ID3V1_GENRES[int(value)]
        return value

    # ------------------------------------------------------------------
    # ID3v2
    # ------------------------------------------------------------------

    def _read_id3v2(self, data: bytes) -> Tuple[List[Tuple[str, bytes]], int]:
        """
        Read ID3v2 frames.
        
        Returns:
            ([(frame_id, payload), ...], offset just past the tag; 0 if no tag)
        """
        if not data.startswith(b'ID3'):
            return [], 0
        if len(data) < 10:
            raise MalformedContainerError("Could not read audio tags: ID3v2 header is truncated")

        major = data[3]
        flags = data[5]
        if major not in (2, 3, 4):
            raise MalformedContainerError(f"Could not read audio tags: unsupported ID3v2.{major} tag")
        if any(b & 0x80 for b in data[6:10]):
            raise MalformedContainerError("Could not read audio tags: invalid ID3v2 tag size")
        tag_end = 10 + _synchsafe(data[6:10])
        if tag_end > len(data):
            raise MalformedContainerError("Could not read audio tags: ID3v2 tag is truncated")

        body = data[10:tag_end]
        if flags & 0x80 and major < 4:
            body = _remove_unsynchronisation(body)

        pos = 0
        if flags & 0x40 and major == 3:
            pos = 4 + struct.unpack('>I', body[0:4])[0]
        elif flags & 0x40 and major == 4:
            pos = _synchsafe(body[0:4])

        header_size = 6 if major == 2 else 10
        frames: List[Tuple[str, bytes]] = []
        while pos + header_size <= len(body):
            if body[pos] == 0:
                break  # padding
            if major == 2:
                raw_id = body[pos:pos + 3]
                size = int.from_bytes(body[pos + 3:pos + 6], 'big')
                format_flags = 0
            else:
                raw_id = body[pos:pos + 4]
                size_bytes = body[pos + 4:pos + 8]
                size = _synchsafe(size_bytes) if major == 4 else struct.unpack('>I', size_bytes)[0]
                format_flags = body[pos + 9]
            if not _FRAME_ID.match(raw_id):
                logger.debug("Stopping at invalid frame id %r", raw_id)
                break
            start = pos + header_size
            end = start + size
            if end > len(body):
                logger.debug("Frame %r overruns the tag", raw_id)
                break
            payload = self._frame_payload(major, format_flags, body[start:end])
            if payload is not None:
                frames.append((raw_id.decode('ascii'), payload))
            pos = end
        return frames, tag_end

    @staticmethod
    def _frame_payload(major: int, format_flags: int, payload: bytes) -> Optional[bytes]:
        """Undo per-frame encodings; None for frames that cannot be read."""
        if major == 3:
            if format_flags & 0xC0:  # compressed or encrypted
                return None
            if format_flags & 0x20:  # grouping identity
                payload = payload[1:]
        elif major == 4:
            if format_flags & 0x0C:  # compressed or encrypted
                return None
            if format_flags & 0x40:
                payload = payload[1:]
            if format_flags & 0x01:  # data length indicator
                payload = payload[4:]
            if format_flags & 0x02:
                payload = _remove_unsynchronisation(payload)
        return payload

    # ------------------------------------------------------------------
    # ID3v1
    # ------------------------------------------------------------------

    @staticmethod
    def _read_id3v1(data: bytes) -> Optional[Dict[str, str]]:
        if len(data) < ID3V1_SIZE or data[-ID3V1_SIZE:-ID3V1_SIZE + 3] != b'TAG':
            return None
        tag = data[-ID3V1_SIZE:]

        def text(start: int, end: int) -> str:
            return tag[start:end].split(b'\x00', 1)[0].decode('latin-1').strip()

        fields = {
            'title': text(3, 33),
            'artist': text(33, 63),
            'album': text(63, 93),
            'year': text(93, 97),
            'comment': text(97, 127),
        }
        # ID3v1.1 stores the track number in the last comment byte
        if tag[125] == 0 and tag[126] != 0:
            fields['comment'] = text(97, 125)
            fields['track'] = str(tag[126])
        if tag[127] < len(ID3V1_GENRES):
            fields['genre'] = ID3V1_GENRES[tag[127]]
        return fields

    # ------------------------------------------------------------------
    # MPEG stream
    # ------------------------------------------------------------------

    def _stream_info(self, data: bytes, start: int, end: int) -> Dict[str, str]:
        """
        Describe the first MPEG audio frame after the tag.
        """
        offset = start
        limit = min(end - 4, start + MAX_SYNC_SCAN)
        while offset < limit:
            if data[offset] == 0xFF and (data[offset + 1] & 0xE0) == 0xE0:
                info = self._parse_mpeg_header(data[offset:offset + 4])
                if info:
                    bitrate = info.pop('_bitrate')
                    seconds = (end - offset) * 8 / (bitrate * 1000)
                    info['duration'] = f"{self._format_duration(seconds)} (approx)"
                    return info
            offset += 1
        return {}

    def _parse_mpeg_header(self, header: bytes) -> Dict[str, object]:
        """
        Parse a 4-byte MPEG audio frame header.
        
        Returns:
            Display values plus the raw bitrate under '_bitrate', or {} if invalid
        """
        version_bits = (header[1] >> 3) & 0x03
        layer_bits = (header[1] >> 1) & 0x03
        bitrate_index = (header[2] >> 4) & 0x0F
        sample_rate_index = (header[2] >> 2) & 0x03
        channel_mode_bits = (header[3] >> 6) & 0x03

        if version_bits == 1 or layer_bits == 0:
            return {}
        bitrate = self._get_mpeg_bitrate(version_bits, layer_bits, bitrate_index)
        sample_rate = self._get_mpeg_sample_rate(version_bits, sample_rate_index)
        if not bitrate or not sample_rate:
            return {}

        version = {0: '2.5', 2: '2', 3: '1'}[version_bits]
        layer = {1: 'III', 2: 'II', 3: 'I'}[layer_bits]
        channel_mode = {0: 'Stereo', 1: 'Joint Stereo', 2: 'Dual Channel', 3: 'Mono'}[channel_mode_bits]
        return {
            'format': f"MPEG-{version} Layer {layer}",
            'bitrate': f"{bitrate} kbps",
            'sampleRate': f"{sample_rate} Hz",
            'channelMode': channel_mode,
            '_bitrate': bitrate,
        }

    @staticmethod
    def _get_mpeg_bitrate(version: int, layer: int, index: int) -> Optional[int]:
        """Get MPEG bitrate (kbps) from index."""
        # MPEG 1 Layer III
        if version == 3 and layer == 1:
            bitrates = [0, 32, 40, 48, 56, 64, 80, 96, 112, 128, 160, 192, 224, 256, 320, 0]
        # MPEG 1 Layer II
        elif version == 3 and layer == 2:
            bitrates = [0, 32, 48, 56, 64, 80, 96, 112, 128, 160, 192, 224, 256, 320, 384, 0]
        # MPEG 1 Layer I
        elif version == 3 and layer == 3:
            bitrates = [0, 32, 64, 96, 128, 160, 192, 224, 256, 288, 320, 352, 384, 416, 448, 0]
        # MPEG 2/2.5 Layer II and III
        elif version in (2, 0) and layer in (1, 2):
            bitrates = [0, 8, 16, 24, 32, 40, 48, 56, 64, 80, 96, 112, 128, 144, 160, 0]
        # MPEG 2/2.5 Layer I
        elif version in (2, 0) and layer == 3:
            bitrates = [0, 32, 48, 56, 64, 80, 96, 112, 128, 144, 160, 176, 192, 224, 256, 0]
        else:
            return None
        return bitrates[index] or None

    @staticmethod
    def _get_mpeg_sample_rate(version: int, index: int) -> Optional[int]:
        """Get MPEG sample rate (Hz) from index."""
        sample_rates = {
            3: [44100, 48000, 32000, 0],
            2: [22050, 24000, 16000, 0],
            0: [11025, 12000, 8000, 0],
        }.get(version)
        if sample_rates is None:
            return None
        return sample_rates[index] or None

    @staticmethod
    def _format_duration(seconds: float) -> str:
        if seconds >= 60:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}:{minutes:02d}:{secs:02d}"
        return f"{seconds:.2f} s"
