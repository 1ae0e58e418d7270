import pytest

from dnmeta.exceptions import FieldValueError, SpliceFailureError, WriteUnsupportedError
from dnmeta.exif_tags import EXIF_IFD, GPS_IFD, IFD0, IFD1
from dnmeta.exif_writer import ExifWriter
from dnmeta.image_reader import ImageMetadataReader, load_exif_structure
from dnmeta.jpeg_modifier import JPEGModifier
from dnmeta.model import MetadataField, MetadataModel, file_name_field
from dnmeta.options import EditorOptions

from conftest import APP0, DQT, EOI, SCAN_DATA, SOF0, SOI, SOS, build_jpeg, sample_tiff


@pytest.fixture
def reader():
    return ImageMetadataReader()


@pytest.fixture
def writer():
    return ExifWriter()


def edit_and_save(reader, writer, data, edits):
    model = reader.parse(data, 'photo.jpg')
    for (category, key), value in edits.items():
        model.update_field(category, key, value)
    return writer.save(data, model)


class TestUnchangedSave:
    def test_byte_preservation(self, reader, writer, camera_jpeg):
        output = writer.save(camera_jpeg, reader.parse(camera_jpeg, 'photo.jpg'))
        assert JPEGModifier(output).non_exif_parts() == JPEGModifier(camera_jpeg).non_exif_parts()
        assert output.endswith(SOS + SCAN_DATA + EOI)

    def test_metadata_survives(self, reader, writer, camera_jpeg):
        output = writer.save(camera_jpeg, reader.parse(camera_jpeg, 'photo.jpg'))
        assert reader.parse(output, 'photo.jpg') == reader.parse(camera_jpeg, 'photo.jpg')

    def test_unmapped_entries_and_thumbnail_survive(self, reader, writer, camera_jpeg):
        output = edit_and_save(reader, writer, camera_jpeg, {('camera', 'make'): 'Nikon'})
        structure = load_exif_structure(output)
        assert structure.value(IFD0, 0x4746) == 5
        assert structure.value(EXIF_IFD, 0x927C) == b'MAKERNOTE-DATA'
        assert structure.value(IFD1, 0x0103) == 6
        assert structure.thumbnail == SOI + b'THUMBNAIL' + EOI

    def test_original_bytes_untouched(self, reader, writer, camera_jpeg):
        snapshot = bytes(camera_jpeg)
        edit_and_save(reader, writer, camera_jpeg, {('camera', 'make'): 'Nikon'})
        assert camera_jpeg == snapshot


class TestEdits:
    def test_title(self, reader, writer, camera_jpeg):
        model = reader.parse(camera_jpeg, 'photo.jpg')
        model.add_field(MetadataField('title', 'Title', '', 'basic'))
        model.update_field('basic', 'title', 'Hello')
        output = writer.save(camera_jpeg, model)
        assert reader.parse(output, 'photo.jpg').get_field('basic', 'title').value == 'Hello'

    def test_text_and_numbers(self, reader, writer, camera_jpeg):
        output = edit_and_save(reader, writer, camera_jpeg, {
            ('camera', 'make'): 'Nikon',
            ('camera', 'iso'): '3200',
            ('camera', 'aperture'): 'f/4',
            ('camera', 'exposureTime'): '1/1000s',
            ('camera', 'focalLength'): '35 mm',
            ('technical', 'xResolution'): '300',
        })
        model = reader.parse(output, 'photo.jpg')
        assert model.get_field('camera', 'make').value == 'Nikon'
        assert model.get_field('camera', 'model').value == 'EOS 5D'
        assert model.get_field('camera', 'iso').value == 3200
        assert model.get_field('camera', 'aperture').value == 'f/4'
        assert model.get_field('camera', 'exposureTime').value == '1/1000s'
        assert model.get_field('camera', 'focalLength').value == '35 mm'
        assert model.get_field('technical', 'xResolution').value == 300

    def test_large_integer_uses_long(self, reader, writer, camera_jpeg):
        output = edit_and_save(reader, writer, camera_jpeg, {('camera', 'iso'): 102400})
        assert reader.parse(output, 'p.jpg').get_field('camera', 'iso').value == 102400

    def test_gps(self, reader, writer, camera_jpeg):
        output = edit_and_save(reader, writer, camera_jpeg, {
            ('location', 'gpsLatitude'): '-33.5',
        })
        model = reader.parse(output, 'p.jpg')
        assert model.get_field('location', 'gpsLatitude').value == "33° 30' 0\" S"
        assert load_exif_structure(output).value(GPS_IFD, 0x0001) == 'S'

    def test_blank_value_removes_tag(self, reader, writer, camera_jpeg):
        output = edit_and_save(reader, writer, camera_jpeg, {
            ('basic', 'software'): '',
            ('location', 'gpsLongitude'): ' ',
        })
        model = reader.parse(output, 'p.jpg')
        assert model.get_field('basic', 'software') is None
        assert model.get_field('location', 'gpsLongitude') is None
        assert load_exif_structure(output).get(GPS_IFD, 0x0003) is None

    def test_unchanged_entries_keep_original_bytes(self, reader, writer, camera_jpeg):
        output = edit_and_save(reader, writer, camera_jpeg, {('camera', 'make'): 'Nikon'})
        before = load_exif_structure(camera_jpeg)
        after = load_exif_structure(output)
        assert after.get(EXIF_IFD, 0x829A) == before.get(EXIF_IFD, 0x829A)
        assert after.get(GPS_IFD, 0x0002) == before.get(GPS_IFD, 0x0002)

    def test_custom_and_read_only_fields_not_written(self, reader, writer, camera_jpeg):
        model = reader.parse(camera_jpeg, 'photo.jpg')
        field = model.add_custom_field()
        model.rename_custom_field(field.key, 'make', 'Custom')
        model.update_field('basic', 'fileName', 'renamed.jpg')
        output = writer.save(camera_jpeg, model)
        reparsed = reader.parse(output, 'photo.jpg')
        assert reparsed.get_field('camera', 'make').value == 'Canon'

    def test_big_endian_block(self, reader, writer):
        data = build_jpeg(sample_tiff('>'))
        output = edit_and_save(reader, writer, data, {('camera', 'model'): 'R5'})
        assert load_exif_structure(output).endian == '>'
        assert reader.parse(output, 'p.jpg').get_field('camera', 'model').value == 'R5'


class TestNewExifBlock:
    def test_synthesized_when_missing(self, reader, writer, plain_jpeg):
        model = MetadataModel({'basic': [file_name_field('plain.jpg')]})
        model.add_field(MetadataField('artist', 'Artist', 'Ann', 'basic'))
        model.add_field(MetadataField('iso', 'ISO', '200', 'camera'))
        model.add_field(MetadataField('gpsAltitude', 'GPS Altitude', '-12 m', 'location'))
        output = writer.save(plain_jpeg, model)
        assert output[:2] == SOI and output[2:4] == b'\xff\xe1'
        assert output.endswith(APP0 + DQT + SOF0 + SOS + SCAN_DATA + EOI)
        structure = load_exif_structure(output)
        assert structure.value(EXIF_IFD, 0x9000) == b'0232'
        assert structure.value(GPS_IFD, 0x0000) == b'\x02\x03\x00\x00'
        reparsed = reader.parse(output, 'plain.jpg')
        assert reparsed.get_field('basic', 'artist').value == 'Ann'
        assert reparsed.get_field('camera', 'iso').value == 200
        assert reparsed.get_field('location', 'gpsAltitude').value == '-12 m'

    def test_refused_when_disabled(self, reader, plain_jpeg):
        writer = ExifWriter(EditorOptions(SynthesizeExif=False))
        with pytest.raises(SpliceFailureError):
            writer.save(plain_jpeg, MetadataModel())

    def test_big_endian_option(self, plain_jpeg):
        writer = ExifWriter(EditorOptions(ByteOrder='MM'))
        model = MetadataModel({'camera': [MetadataField('make', 'Camera Make', 'Leica', 'camera')]})
        output = writer.save(plain_jpeg, model)
        assert load_exif_structure(output).endian == '>'


class TestFailures:
    def test_invalid_value(self, reader, writer, camera_jpeg):
        model = reader.parse(camera_jpeg, 'photo.jpg')
        model.update_field('camera', 'iso', 'abc')
        with pytest.raises(FieldValueError) as excinfo:
            writer.save(camera_jpeg, model)
        assert excinfo.value.key == 'iso'

    @pytest.mark.parametrize("category, key, value", [
        ('camera', 'exposureTime', '1/0s'),
        ('camera', 'aperture', 'f/1/0'),
        ('camera', 'aperture', 'f/0/0'),
        ('camera', 'focalLength', 'inf mm'),
        ('technical', 'xResolution', '72/0'),
        ('technical', 'xResolution', 'nan'),
    ])
    def test_unrepresentable_number(self, reader, writer, camera_jpeg, category, key, value):
        model = reader.parse(camera_jpeg, 'photo.jpg')
        model.update_field(category, key, value)
        with pytest.raises(FieldValueError) as excinfo:
            writer.save(camera_jpeg, model)
        assert excinfo.value.key == key

    def test_gps_out_of_range(self, reader, writer, camera_jpeg):
        model = reader.parse(camera_jpeg, 'photo.jpg')
        model.update_field('location', 'gpsLatitude', '123')
        with pytest.raises(FieldValueError):
            writer.save(camera_jpeg, model)

    def test_audio_rejected(self, writer, song_mp3):
        with pytest.raises(WriteUnsupportedError):
            writer.save(song_mp3, MetadataModel())

    def test_tiff_rejected(self, writer):
        with pytest.raises(WriteUnsupportedError):
            writer.save(sample_tiff(), MetadataModel())

    def test_corrupt_jpeg(self, writer):
        with pytest.raises(SpliceFailureError):
            writer.save(SOI + b'\xff\xe0\x00\x40JFIF', MetadataModel())

    def test_corrupt_exif_block(self, writer):
        with pytest.raises(SpliceFailureError):
            writer.save(build_jpeg(b'XX*\x00\x08\x00\x00\x00'), MetadataModel())

    def test_oversized_block(self, reader, writer, camera_jpeg):
        model = reader.parse(camera_jpeg, 'photo.jpg')
        model.update_field('camera', 'make', 'x' * 70000)
        with pytest.raises(SpliceFailureError):
            writer.save(camera_jpeg, model)

    def test_output_filename(self, writer):
        assert writer.output_filename('photo.jpg') == 'edited_photo.jpg'
