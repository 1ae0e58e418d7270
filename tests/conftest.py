"""
Shared pytest fixtures and byte-level builders.

Test inputs are assembled in memory so no binary fixtures are checked in.
The TIFF builder here is deliberately independent of dnmeta's encoder.
"""

import struct

import pytest

# ----------------------------------------------------------------------
# JPEG
# ----------------------------------------------------------------------

SOI = b'\xff\xd8'
EOI = b'\xff\xd9'


def segment(marker: int, payload: bytes) -> bytes:
    return bytes([0xFF, marker]) + struct.pack('>H', len(payload) + 2) + payload


APP0 = segment(0xE0, b'JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00')
DQT = segment(0xDB, b'\x00' + bytes(range(64)))
SOF0 = segment(0xC0, b'\x08\x00\x10\x00\x10\x01\x01\x11\x00')
SOS = segment(0xDA, b'\x01\x01\x00\x00\x3f\x00')
# Entropy-coded data with stuffed bytes and a restart marker
SCAN_DATA = b'\x12\x34\xff\x00\x56\xff\xd0\x78\x9a\xff\x00\xbc\xde'


def build_jpeg(tiff: bytes = None, extra_segments: bytes = b'') -> bytes:
    exif = segment(0xE1, b'Exif\x00\x00' + tiff) if tiff is not None else b''
    return SOI + APP0 + exif + DQT + SOF0 + extra_segments + SOS + SCAN_DATA + EOI


# ----------------------------------------------------------------------
# TIFF / IFD
# ----------------------------------------------------------------------

def ascii_entry(tag, text, endian='<'):
    raw = text.encode('utf-8') + b'\x00'
    return (tag, 2, len(raw), raw)


def short_entry(tag, value, endian='<'):
    return (tag, 3, 1, struct.pack(f'{endian}H', value))


def long_entry(tag, value, endian='<'):
    return (tag, 4, 1, struct.pack(f'{endian}I', value))


def rational_entry(tag, *pairs, endian='<'):
    raw = b''.join(struct.pack(f'{endian}II', num, den) for num, den in pairs)
    return (tag, 5, len(pairs), raw)


def float_entry(tag, value, endian='<'):
    return (tag, 11, 1, struct.pack(f'{endian}f', value))


def double_entry(tag, value, endian='<'):
    return (tag, 12, 1, struct.pack(f'{endian}d', value))


def byte_entry(tag, raw):
    return (tag, 1, len(raw), raw)


def undefined_entry(tag, raw):
    return (tag, 7, len(raw), raw)


def _ifd_size(entries):
    size = 2 + 12 * len(entries) + 4
    for _, _, _, raw in entries:
        if len(raw) > 4:
            size += len(raw) + (len(raw) & 1)
    return size


def _encode_ifd(entries, start, next_ifd, endian):
    table = bytearray(struct.pack(f'{endian}H', len(entries)))
    data = bytearray()
    data_start = start + 2 + 12 * len(entries) + 4
    for tag, tag_type, count, raw in entries:
        table += struct.pack(f'{endian}HHI', tag, tag_type, count)
        if len(raw) <= 4:
            table += raw.ljust(4, b'\x00')
        else:
            table += struct.pack(f'{endian}I', data_start + len(data))
            data += raw
            if len(raw) & 1:
                data.append(0)
    table += struct.pack(f'{endian}I', next_ifd)
    return bytes(table + data)


def build_tiff(ifd0, exif=None, gps=None, ifd1=None, thumbnail=None, endian='<'):
    """
    Build a TIFF structure. Pointer and thumbnail location tags are added
    automatically.
    """
    ifd0 = list(ifd0)
    groups = [('IFD0', ifd0)]
    if exif is not None:
        ifd0.append(long_entry(0x8769, 0, endian))
        groups.append(('Exif', list(exif)))
    if gps is not None:
        ifd0.append(long_entry(0x8825, 0, endian))
        groups.append(('GPS', list(gps)))
    if ifd1 is not None or thumbnail:
        ifd1 = list(ifd1 or [])
        if thumbnail:
            ifd1.append(long_entry(0x0201, 0, endian))
            ifd1.append(long_entry(0x0202, len(thumbnail), endian))
        groups.append(('IFD1', ifd1))

    offsets = {}
    position = 8
    for name, entries in groups:
        offsets[name] = position
        position += _ifd_size(entries)

    def patch(entries, tag, value):
        for index, entry in enumerate(entries):
            if entry[0] == tag:
                entries[index] = long_entry(tag, value, endian)

    patch(ifd0, 0x8769, offsets.get('Exif', 0))
    patch(ifd0, 0x8825, offsets.get('GPS', 0))
    if thumbnail:
        patch(ifd1, 0x0201, position)

    out = bytearray(b'II' if endian == '<' else b'MM')
    out += struct.pack(f'{endian}HI', 42, 8)
    for name, entries in groups:
        next_ifd = offsets['IFD1'] if name == 'IFD0' and 'IFD1' in offsets else 0
        out += _encode_ifd(sorted(entries), offsets[name], next_ifd, endian)
    if thumbnail:
        out += thumbnail
    return bytes(out)


def xp_entry(tag, text):
    return byte_entry(tag, text.encode('utf-16-le') + b'\x00\x00')


def sample_tiff(endian='<'):
    """Camera EXIF with GPS, an unmapped tag and a thumbnail."""
    return build_tiff(
        ifd0=[
            ascii_entry(0x010F, 'Canon', endian),
            ascii_entry(0x0110, 'EOS 5D', endian),
            ascii_entry(0x0131, 'Firmware 1.1', endian),
            short_entry(0x0112, 1, endian),
            rational_entry(0x011A, (72, 1), endian=endian),
            short_entry(0x4746, 5, endian),  # Rating, not in the dictionary
        ],
        exif=[
            rational_entry(0x829A, (1, 125), endian=endian),
            rational_entry(0x829D, (28, 10), endian=endian),
            short_entry(0x8827, 400, endian),
            ascii_entry(0x9003, '2024:05:01 10:30:00', endian),
            rational_entry(0x920A, (50, 1), endian=endian),
            undefined_entry(0x927C, b'MAKERNOTE-DATA'),  # MakerNote, not in the dictionary
        ],
        gps=[
            byte_entry(0x0000, b'\x02\x03\x00\x00'),
            ascii_entry(0x0001, 'N', endian),
            rational_entry(0x0002, (37, 1), (46, 1), (2964, 100), endian=endian),
            ascii_entry(0x0003, 'W', endian),
            rational_entry(0x0004, (122, 1), (25, 1), (1, 1), endian=endian),
        ],
        ifd1=[short_entry(0x0103, 6, endian)],
        thumbnail=SOI + b'THUMBNAIL' + EOI,
        endian=endian,
    )


@pytest.fixture
def camera_jpeg():
    return build_jpeg(sample_tiff())


@pytest.fixture
def plain_jpeg():
    """A JPEG with no EXIF segment."""
    return build_jpeg()


# ----------------------------------------------------------------------
# MP3 / ID3
# ----------------------------------------------------------------------

# MPEG-1 Layer III, 128 kbps, 44100 Hz, joint stereo: 417-byte frames
MPEG_FRAME = b'\xff\xfb\x90\x64' + b'\x00' * 413


def synchsafe(value: int) -> bytes:
    return bytes([(value >> 21) & 0x7F, (value >> 14) & 0x7F, (value >> 7) & 0x7F, value & 0x7F])


def encode_text(text: str, encoding: int = 3) -> bytes:
    codec = {0: 'latin-1', 1: 'utf-16', 2: 'utf-16-be', 3: 'utf-8'}[encoding]
    return bytes([encoding]) + text.encode(codec)


def frame(frame_id: str, payload: bytes, major: int = 3, flags: bytes = b'\x00\x00') -> bytes:
    if major == 2:
        return frame_id.encode('ascii') + len(payload).to_bytes(3, 'big') + payload
    size = synchsafe(len(payload)) if major == 4 else struct.pack('>I', len(payload))
    return frame_id.encode('ascii') + size + flags + payload


def text_frame(frame_id: str, text: str, encoding: int = 3, major: int = 3) -> bytes:
    return frame(frame_id, encode_text(text, encoding), major)


def comment_frame(text: str, description: str = '', encoding: int = 3, major: int = 3) -> bytes:
    codec = {0: 'latin-1', 1: 'utf-16', 2: 'utf-16-be', 3: 'utf-8'}[encoding]
    terminator = b'\x00\x00' if encoding in (1, 2) else b'\x00'
    payload = (bytes([encoding]) + b'eng' + description.encode(codec) + terminator
               + text.encode(codec))
    return frame('COM' if major == 2 else 'COMM', payload, major)


def id3v2(frames: bytes, major: int = 3, flags: int = 0, padding: int = 16) -> bytes:
    body = frames + b'\x00' * padding
    return b'ID3' + bytes([major, 0, flags]) + synchsafe(len(body)) + body


def id3v1(title='', artist='', album='', year='', comment='', track=None, genre=255) -> bytes:
    def pad(text, size):
        return text.encode('latin-1')[:size].ljust(size, b'\x00')
    if track is None:
        comment_bytes = pad(comment, 30)
    else:
        comment_bytes = pad(comment, 28) + b'\x00' + bytes([track])
    return (b'TAG' + pad(title, 30) + pad(artist, 30) + pad(album, 30)
            + pad(year, 4) + comment_bytes + bytes([genre]))


def build_mp3(tag: bytes = b'', frames: int = 10, trailer: bytes = b'') -> bytes:
    return tag + MPEG_FRAME * frames + trailer


@pytest.fixture
def song_mp3():
    return build_mp3(id3v2(
        text_frame('TIT2', 'Song')
        + text_frame('TPE1', 'Band')
        + text_frame('TALB', 'Album')
        + text_frame('TRCK', '3/12')
        + text_frame('TCON', '(17)')
        + comment_frame('Great track', 'desc')
    ))
