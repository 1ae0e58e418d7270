import json

import pytest

from dnmeta.exceptions import MalformedContainerError
from dnmeta.image_reader import ImageMetadataReader
from dnmeta.json_exporter import JSONExporter
from dnmeta.options import EditorOptions
from dnmeta.tag_dictionary import EXIF, TAG_DICTIONARY


@pytest.fixture
def exporter():
    return JSONExporter()


class TestJSONExporter:
    def test_export_contains_exactly_the_mapped_fields(self, exporter, camera_jpeg):
        model = ImageMetadataReader().parse(camera_jpeg, 'photo.jpg')
        document = json.loads(exporter.export(model, 'photo.jpg'))
        keys = {item['key'] for items in document.values() for item in items}
        mapped = keys - {'fileName'}
        assert all(TAG_DICTIONARY.resolve_by_key(EXIF, key) for key in mapped)
        assert document['camera'][0] == {
            'key': 'make', 'label': 'Camera Make', 'value': 'Canon',
            'category': 'camera', 'editable': True, 'isCustom': False,
        }

    def test_custom_fields_included(self, exporter, camera_jpeg):
        model = ImageMetadataReader().parse(camera_jpeg, 'photo.jpg')
        field = model.add_custom_field()
        model.rename_custom_field(field.key, 'mood', 'calm')
        document = json.loads(exporter.export(model, 'photo.jpg'))
        assert document['custom'] == [{
            'key': 'mood', 'label': 'mood', 'value': 'calm',
            'category': 'custom', 'editable': True, 'isCustom': True,
        }]

    def test_pretty_printed_utf8(self, exporter, camera_jpeg):
        model = ImageMetadataReader().parse(camera_jpeg, 'café.jpg')
        data = exporter.export(model, 'café.jpg')
        assert 'café.jpg'.encode('utf-8') in data
        assert b'\n  "basic": [' in data

    def test_indent_option(self, camera_jpeg):
        model = ImageMetadataReader().parse(camera_jpeg, 'photo.jpg')
        data = JSONExporter(EditorOptions(JsonIndent=4)).export(model)
        assert b'\n    "basic": [' in data

    @pytest.mark.parametrize("filename, expected", [
        ('photo.jpg', 'photo_metadata.json'),
        ('archive.tar.gz', 'archive_metadata.json'),
        ('README', 'README_metadata.json'),
    ])
    def test_export_filename(self, exporter, filename, expected):
        assert exporter.export_filename(filename) == expected

    def test_load_is_inverse(self, exporter, camera_jpeg):
        model = ImageMetadataReader().parse(camera_jpeg, 'photo.jpg')
        model.add_custom_field()
        assert exporter.load(exporter.export(model, 'photo.jpg')) == model

    @pytest.mark.parametrize("data", [b'not json', b'[1, 2]', b'{"basic": 3}', b'\xff\xfe'])
    def test_load_rejects_bad_documents(self, exporter, data):
        with pytest.raises(MalformedContainerError):
            exporter.load(data)
