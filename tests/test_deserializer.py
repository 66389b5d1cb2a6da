# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from enum import Enum

import pytest

from recordxml import CodecOptions, UnknownFieldPolicy, from_bytes, from_str, write_to_bytes, write_to_string
from recordxml.deserializer import Decoder, deserialize
from recordxml.events import ElementEnd, ElementStart, Text
from recordxml.exceptions import DecodeError, InvalidValue, MalformedXml, MissingField, UnexpectedAttribute, UnexpectedElement, UnexpectedText
from recordxml.schema import Boolean, Enumeration, FieldDescriptor, Float, Integer, MappingKind, Nested, Optional, Repeated, SchemaDescriptor, String, Union
from recordxml.serializer import serialize

rectangle = SchemaDescriptor('rectangle', (
    FieldDescriptor('width', MappingKind.ATTRIBUTE, Integer()),
    FieldDescriptor('height', MappingKind.ATTRIBUTE, Integer()),
))

point = SchemaDescriptor('point', (
    FieldDescriptor('x', MappingKind.ATTRIBUTE, Integer()),
    FieldDescriptor('y', MappingKind.ATTRIBUTE, Integer()),
))

polygon = SchemaDescriptor('polygon', (
    FieldDescriptor('label', MappingKind.CHILD_ELEMENT, Optional(String())),
    FieldDescriptor('origin', MappingKind.CHILD_ELEMENT, Nested(point)),
    FieldDescriptor('point', MappingKind.CHILD_SEQUENCE, Repeated(Nested(point)), key='points'),
))

strict = CodecOptions(unknown_fields=UnknownFieldPolicy.ERROR)


class Status(Enum):
    ACTIVE = 'active'
    DISABLED = 'disabled'


class TestDeserializer:

    def test_rectangle(self) -> None:
        assert from_str('<rectangle width="13" height="42"/>', rectangle) == {'width': 13, 'height': 42}
        assert from_str('<rectangle height="42" width="13"/>', rectangle) == {'width': 13, 'height': 42}
        assert from_str('<rectangle width="13" height="42"></rectangle>', rectangle) == {'width': 13, 'height': 42}
        assert from_bytes(b'<?xml version="1.0" encoding="utf-8"?>\n<rectangle width="13" height="42"/>\n', rectangle) == {'width': 13, 'height': 42}

    def test_missing_field(self) -> None:
        with pytest.raises(MissingField, match=r"Missing mandatory field 'height' in 'rectangle'") as exc_info:
            from_str('<rectangle width="13"/>', rectangle)
        assert exc_info.value.field == 'height'

    def test_invalid_value(self) -> None:
        with pytest.raises(InvalidValue, match=r"Invalid value for 'width' in 'rectangle': 'abc' \(expected signed 64-bit integer\)") as exc_info:
            from_str('<rectangle width="abc" height="42"/>', rectangle)
        assert exc_info.value.field == 'width'
        assert exc_info.value.raw_text == 'abc'
        assert exc_info.value.expected == 'signed 64-bit integer'
        assert isinstance(exc_info.value, DecodeError)

        # no implicit whitespace trimming
        with pytest.raises(InvalidValue):
            from_str('<rectangle width=" 13" height="42"/>', rectangle)

    def test_root_mismatch(self) -> None:
        with pytest.raises(UnexpectedElement, match=r"Unexpected element 'square', expected 'rectangle'") as exc_info:
            from_str('<square width="1" height="1"/>', rectangle)
        assert exc_info.value.tag == 'square'
        assert exc_info.value.expected == 'rectangle'

    def test_malformed(self) -> None:
        with pytest.raises(MalformedXml):
            from_str('<rectangle width="13" height="42">', rectangle)
        with pytest.raises(MalformedXml):
            from_str('<rectangle width="13" width="42"/>', rectangle)

    def test_unknown_fields(self) -> None:
        markup = '<rectangle width="13" depth="7" height="42"><color>red</color><extra><nested a="1">text</nested></extra></rectangle>'
        assert from_str(markup, rectangle) == {'width': 13, 'height': 42}

        with pytest.raises(UnexpectedAttribute, match=r"Unexpected attribute 'depth' in 'rectangle'"):
            from_str(markup, rectangle, options=strict)
        with pytest.raises(UnexpectedElement, match=r"Unexpected element 'color' in 'rectangle'"):
            from_str('<rectangle width="13" height="42"><color>red</color></rectangle>', rectangle, options=strict)

    def test_unknown_fields_are_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger='recordxml.deserializer'):
            from_str('<rectangle width="13" height="42" depth="7"><color/></rectangle>', rectangle)
        assert "Ignoring unknown attribute 'depth' in 'rectangle'" in caplog.text
        assert "Ignoring unknown element 'color' in 'rectangle'" in caplog.text

    def test_unexpected_text(self) -> None:
        assert from_str('<rectangle width="13" height="42">\n  \t</rectangle>', rectangle) == {'width': 13, 'height': 42}
        with pytest.raises(UnexpectedText, match=r"Unexpected text 'hello' in 'rectangle'"):
            from_str('<rectangle width="13" height="42">hello</rectangle>', rectangle)

    def test_repeated(self) -> None:
        numbers = SchemaDescriptor('list', (
            FieldDescriptor('name', MappingKind.CHILD_ELEMENT, String()),
            FieldDescriptor('item', MappingKind.CHILD_SEQUENCE, Repeated(Integer())),
        ))
        assert from_str('<list><item>1</item><item>2</item><item>3</item><name>n</name></list>', numbers) == {'name': 'n', 'item': [1, 2, 3]}
        # items may be interleaved with other fields, their relative order is kept
        assert from_str('<list><item>3</item><name>n</name><item>1</item><item>2</item></list>', numbers) == {'name': 'n', 'item': [3, 1, 2]}
        assert from_str('<list><name>n</name></list>', numbers) == {'name': 'n', 'item': []}

        required = SchemaDescriptor('list', (FieldDescriptor('item', MappingKind.CHILD_SEQUENCE, Repeated(Integer(), optional=False)),))
        with pytest.raises(MissingField, match=r"Missing mandatory field 'item' in 'list'"):
            from_str('<list/>', required)

        with pytest.raises(InvalidValue, match=r"Invalid value for 'item' in 'list': 'x'"):
            from_str('<list><name>n</name><item>1</item><item>x</item></list>', numbers)

    def test_excess_element(self) -> None:
        with pytest.raises(UnexpectedElement, match=r"Unexpected element 'label' in 'polygon'"):
            from_str('<polygon><label>a</label><label>b</label><origin x="0" y="0"/></polygon>', polygon)

    def test_wrapped_sequence(self) -> None:
        playlist = SchemaDescriptor('playlist', (FieldDescriptor('tracks', MappingKind.CHILD_SEQUENCE, Repeated(String(), optional=False), item_name='track'),))
        assert from_str('<playlist><tracks>\n  <track>a</track>\n  <track>b</track>\n</tracks></playlist>', playlist) == {'tracks': ['a', 'b']}
        assert from_str('<playlist><tracks><track>a</track><other/></tracks></playlist>', playlist) == {'tracks': ['a']}
        with pytest.raises(MissingField, match=r"Missing mandatory field 'tracks' in 'playlist'"):
            from_str('<playlist><tracks/></playlist>', playlist)
        with pytest.raises(UnexpectedText, match=r"Unexpected text 'x' in 'tracks'"):
            from_str('<playlist><tracks>x<track>a</track></tracks></playlist>', playlist)
        with pytest.raises(UnexpectedElement, match=r"Unexpected element 'tracks' in 'playlist'"):
            from_str('<playlist><tracks><track>a</track></tracks><tracks><track>b</track></tracks></playlist>', playlist)

    def test_nested(self) -> None:
        markup = '<polygon><point x="1" y="2"/><origin y="0" x="0"/><point x="3" y="4"/><label>triangle</label><point x="5" y="6"/></polygon>'
        assert from_str(markup, polygon) == {
            'label': 'triangle',
            'origin': {'x': 0, 'y': 0},
            'points': [{'x': 1, 'y': 2}, {'x': 3, 'y': 4}, {'x': 5, 'y': 6}],
        }
        assert from_str('<polygon><origin x="0" y="0"/></polygon>', polygon) == {'label': None, 'origin': {'x': 0, 'y': 0}, 'points': []}

        with pytest.raises(MissingField, match=r"Missing mandatory field 'origin' in 'polygon'"):
            from_str('<polygon><point x="1" y="2"/></polygon>', polygon)
        with pytest.raises(MissingField, match=r"Missing mandatory field 'y' in 'origin'"):
            from_str('<polygon><origin x="0"/></polygon>', polygon)
        with pytest.raises(InvalidValue, match=r"Invalid value for 'x' in 'point': '1.5'"):
            from_str('<polygon><origin x="0" y="0"/><point x="1.5" y="2"/></polygon>', polygon)

    def test_text_content(self) -> None:
        note = SchemaDescriptor('note', (
            FieldDescriptor('lang', MappingKind.ATTRIBUTE, Optional(String())),
            FieldDescriptor('text', MappingKind.TEXT_CONTENT, String()),
        ))
        assert from_str('<note lang="en">  a &lt; b &amp; c </note>', note) == {'lang': 'en', 'text': '  a < b & c '}
        assert from_str('<note/>', note) == {'lang': None, 'text': ''}

        counter = SchemaDescriptor('counter', (
            FieldDescriptor('value', MappingKind.TEXT_CONTENT, Integer()),
            FieldDescriptor('unit', MappingKind.CHILD_ELEMENT, Optional(String())),
        ))
        assert from_str('<counter>42</counter>', counter) == {'value': 42, 'unit': None}
        assert from_str('<counter>42<unit>ms</unit></counter>', counter) == {'value': 42, 'unit': 'ms'}
        with pytest.raises(MissingField, match=r"Missing mandatory field 'value' in 'counter'"):
            from_str('<counter>\n  <unit>ms</unit>\n</counter>', counter)
        with pytest.raises(InvalidValue, match=r"Invalid value for 'value' in 'counter': ' 42 '"):
            from_str('<counter> 42 </counter>', counter)

        # whitespace only text next to child elements is indentation
        commented = SchemaDescriptor('commented', (
            FieldDescriptor('text', MappingKind.TEXT_CONTENT, String()),
            FieldDescriptor('count', MappingKind.CHILD_ELEMENT, Integer()),
        ))
        assert from_str('<commented>\n  <count>1</count>\n</commented>', commented) == {'text': '', 'count': 1}
        assert from_str('<commented> a <count>1</count> b </commented>', commented) == {'text': ' a  b ', 'count': 1}
        assert from_str('<note>  </note>', note) == {'lang': None, 'text': '  '}

    def test_scalar_kinds(self) -> None:
        settings = SchemaDescriptor('settings', (
            FieldDescriptor('enabled', MappingKind.ATTRIBUTE, Boolean()),
            FieldDescriptor('ratio', MappingKind.ATTRIBUTE, Float()),
            FieldDescriptor('status', MappingKind.CHILD_ELEMENT, Enumeration(Status)),
            FieldDescriptor('comment', MappingKind.CHILD_ELEMENT, String()),
        ))
        assert from_str('<settings enabled="true" ratio="0.5"><status>disabled</status><comment/></settings>', settings) == {
            'enabled': True,
            'ratio': 0.5,
            'status': Status.DISABLED,
            'comment': '',
        }
        with pytest.raises(InvalidValue, match=r"Invalid value for 'enabled' in 'settings': '1' \(expected boolean\)"):
            from_str('<settings enabled="1" ratio="0.5"><status>active</status><comment/></settings>', settings)
        with pytest.raises(InvalidValue, match=r"Invalid value for 'status' in 'settings': 'unknown' \(expected one of 'active', 'disabled'\)"):
            from_str('<settings enabled="true" ratio="0.5"><status>unknown</status><comment/></settings>', settings)

    def test_union(self) -> None:
        setting = SchemaDescriptor('setting', (
            FieldDescriptor('value', MappingKind.ATTRIBUTE, Union((Integer(), Boolean(), String()))),
            FieldDescriptor('mode', MappingKind.CHILD_ELEMENT, Optional(Union((Enumeration(Status), Integer())))),
        ))
        # members are tried in order and the first one that accepts the text wins
        assert from_str('<setting value="5"/>', setting) == {'value': 5, 'mode': None}
        assert from_str('<setting value="true"><mode>active</mode></setting>', setting) == {'value': True, 'mode': Status.ACTIVE}
        assert from_str('<setting value="auto"><mode>3</mode></setting>', setting) == {'value': 'auto', 'mode': 3}

        with pytest.raises(InvalidValue, match=r"Invalid value for 'mode' in 'setting': 'fast' \(expected one of 'active', 'disabled' or signed 64-bit integer\)") as exc_info:
            from_str('<setting value="5"><mode>fast</mode></setting>', setting)
        assert (exc_info.value.field, exc_info.value.raw_text) == ('mode', 'fast')

    def test_declared_encoding(self) -> None:
        record = SchemaDescriptor('m', (FieldDescriptor('v', MappingKind.ATTRIBUTE, String()),))
        assert from_str('<?xml version="1.0" encoding="ISO-8859-1"?><m v="café"/>', record) == {'v': 'café'}
        assert from_bytes('<?xml version="1.0" encoding="ISO-8859-1"?><m v="café"/>'.encode('iso-8859-1'), record) == {'v': 'café'}
        assert from_bytes('<m v="café"/>'.encode(), record) == {'v': 'café'}

    def test_defaults_and_validation(self) -> None:
        def check_port(port: int) -> None:
            if not 0 < port < 65536:
                raise ValueError('port must be between 1 and 65535')

        server = SchemaDescriptor('server', (
            FieldDescriptor('host', MappingKind.ATTRIBUTE, String(), default='localhost'),
            FieldDescriptor('port', MappingKind.ATTRIBUTE, Integer(), validate=check_port),
        ))
        assert from_str('<server port="80"/>', server) == {'host': 'localhost', 'port': 80}
        assert from_str('<server host="example.com" port="80"/>', server) == {'host': 'example.com', 'port': 80}
        with pytest.raises(InvalidValue, match=r"Invalid value for 'port' in 'server': '0': port must be between 1 and 65535"):
            from_str('<server port="0"/>', server)

    def test_factory(self) -> None:
        class Point:
            def __init__(self, x: int, y: int) -> None:
                self.x = x
                self.y = y

        descriptor = SchemaDescriptor('point', point.fields, factory=lambda values: Point(**values))
        result = from_str('<point x="1" y="2"/>', descriptor)
        assert isinstance(result, Point)
        assert (result.x, result.y) == (1, 2)

    def test_target(self) -> None:
        with pytest.raises(TypeError, match=r'expected a SchemaDescriptor or a record type'):
            from_str('<rectangle width="1" height="2"/>', dict)


class TestDecoder:

    def test_event_stream(self) -> None:
        events = [ElementStart('rectangle', (('width', '1'), ('height', '2'))), ElementEnd('rectangle')]
        assert deserialize(rectangle, events) == {'width': 1, 'height': 2}
        assert deserialize(rectangle, [Text('\n'), *events, Text('\n')]) == {'width': 1, 'height': 2}

    def test_truncated_stream(self) -> None:
        with pytest.raises(MalformedXml, match=r'unexpected end of the event stream'):
            deserialize(rectangle, [ElementStart('rectangle', (('width', '1'), ('height', '2')))])
        with pytest.raises(MalformedXml, match=r'unexpected end of the event stream'):
            deserialize(rectangle, [])

    def test_trailing_content(self) -> None:
        events = [ElementStart('rectangle', (('width', '1'), ('height', '2'))), ElementEnd('rectangle'), ElementStart('rectangle'), ElementEnd('rectangle')]
        with pytest.raises(MalformedXml, match=r'unexpected content after the document element'):
            deserialize(rectangle, events)

    def test_unbalanced_stream(self) -> None:
        with pytest.raises(MalformedXml, match=r"unbalanced event in 'rectangle'"):
            deserialize(rectangle, [ElementStart('rectangle', (('width', '1'), ('height', '2'))), ElementEnd('square')])

    def test_consecutive_records(self) -> None:
        events = [
            ElementStart('point', (('x', '1'), ('y', '2'))), ElementEnd('point'),
            Text(' '),
            ElementStart('point', (('x', '3'), ('y', '4'))), ElementEnd('point'),
        ]
        decoder = Decoder(events)
        assert decoder.decode(point) == {'x': 1, 'y': 2}
        assert decoder.decode(point) == {'x': 3, 'y': 4}
        decoder.finish()

    def test_custom_tag(self) -> None:
        decoder = Decoder([ElementStart('origin', (('x', '0'), ('y', '0'))), ElementEnd('origin')], unknown_fields=UnknownFieldPolicy.ERROR)
        assert decoder.decode(point, tag='origin') == {'x': 0, 'y': 0}


class TestRoundTrip:

    def test_events(self) -> None:
        records = [
            {'label': 'triangle', 'origin': {'x': 0, 'y': 0}, 'points': [{'x': 1, 'y': 2}, {'x': -3, 'y': 4}]},
            {'label': None, 'origin': {'x': 5, 'y': 5}, 'points': []},
        ]
        for record in records:
            assert deserialize(polygon, serialize(polygon, record)) == record

    def test_markup(self) -> None:
        document = SchemaDescriptor('document', (
            FieldDescriptor('id', MappingKind.ATTRIBUTE, Integer()),
            FieldDescriptor('title', MappingKind.ATTRIBUTE, String()),
            FieldDescriptor('status', MappingKind.ATTRIBUTE, Enumeration(Status)),
            FieldDescriptor('score', MappingKind.CHILD_ELEMENT, Optional(Float())),
            FieldDescriptor('tags', MappingKind.CHILD_SEQUENCE, Repeated(String()), item_name='tag'),
            FieldDescriptor('public', MappingKind.CHILD_ELEMENT, Boolean()),
        ))
        record = {'id': 7, 'title': 'a "quoted" <title> & more', 'status': Status.ACTIVE, 'score': -1.25, 'tags': ['x', '', 'y z'], 'public': False}
        assert from_str(write_to_string(record, document), document) == record
        assert from_bytes(write_to_bytes(record, document, options=CodecOptions(pretty_print=True, xml_declaration=True)), document) == record

    def test_pretty_print(self) -> None:
        entry = SchemaDescriptor('entry', (
            FieldDescriptor('text', MappingKind.TEXT_CONTENT, Optional(String())),
            FieldDescriptor('count', MappingKind.CHILD_ELEMENT, Integer()),
            FieldDescriptor('origin', MappingKind.CHILD_ELEMENT, Optional(Nested(point))),
        ))
        options = CodecOptions(pretty_print=True)
        records = [
            {'text': None, 'count': 1, 'origin': None},
            {'text': None, 'count': 2, 'origin': {'x': 1, 'y': 2}},
            {'text': 'note', 'count': 3, 'origin': None},
        ]
        for record in records:
            markup = write_to_string(record, entry, options=options)
            assert from_str(markup, entry) == record
        assert write_to_string(records[0], entry, options=options) == '<entry>\n  <count>1</count>\n</entry>\n'

    def test_union(self) -> None:
        value = SchemaDescriptor('value', (FieldDescriptor('data', MappingKind.TEXT_CONTENT, Union((Integer(), Float(), String()))),))
        for record in ({'data': 5}, {'data': 2.5}, {'data': 'text'}):
            assert from_str(write_to_string(record, value), value) == record
        # a string that looks like a number reads back as the number
        assert from_str(write_to_string({'data': '7'}, value), value) == {'data': 7}

    def test_rectangle_scenarios(self) -> None:
        record = {'width': 13, 'height': 42}
        assert write_to_string(record, rectangle) == '<rectangle width="13" height="42"/>'
        assert from_str(write_to_string(record, rectangle), rectangle) == record

        with pytest.raises(MissingField) as exc_info:
            from_str('<rectangle width="13"/>', rectangle)
        assert exc_info.value.field == 'height'

        with pytest.raises(InvalidValue) as exc_info:
            from_str('<rectangle width="abc" height="1"/>', rectangle)
        assert (exc_info.value.field, exc_info.value.raw_text) == ('width', 'abc')
