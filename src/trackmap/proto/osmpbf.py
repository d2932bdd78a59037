"""OSMPBF schema (fileformat.proto and osmformat.proto) as message classes.

The descriptors are assembled with descriptor_pb2 and registered in a
private pool, so no generated code or protoc run is needed. Field numbers,
types and defaults follow the published OSM-binary schema. All fields are
declared optional so that slightly non-conforming writers still decode.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_PACKAGE = "OSMPBF"

_F = descriptor_pb2.FieldDescriptorProto
_OPTIONAL = _F.LABEL_OPTIONAL
_REPEATED = _F.LABEL_REPEATED

# name -> [(field, number, type, label, message type, packed, default)]
_MESSAGES = {
    # fileformat.proto
    "Blob": [
        ("raw", 1, _F.TYPE_BYTES, _OPTIONAL, None, False, None),
        ("raw_size", 2, _F.TYPE_INT32, _OPTIONAL, None, False, None),
        ("zlib_data", 3, _F.TYPE_BYTES, _OPTIONAL, None, False, None),
        ("lzma_data", 4, _F.TYPE_BYTES, _OPTIONAL, None, False, None),
        ("OBSOLETE_bzip2_data", 5, _F.TYPE_BYTES, _OPTIONAL, None, False, None),
        ("lz4_data", 6, _F.TYPE_BYTES, _OPTIONAL, None, False, None),
        ("zstd_data", 7, _F.TYPE_BYTES, _OPTIONAL, None, False, None),
    ],
    "BlobHeader": [
        ("type", 1, _F.TYPE_STRING, _OPTIONAL, None, False, None),
        ("indexdata", 2, _F.TYPE_BYTES, _OPTIONAL, None, False, None),
        ("datasize", 3, _F.TYPE_INT32, _OPTIONAL, None, False, None),
    ],
    # osmformat.proto
    "HeaderBBox": [
        ("left", 1, _F.TYPE_SINT64, _OPTIONAL, None, False, None),
        ("right", 2, _F.TYPE_SINT64, _OPTIONAL, None, False, None),
        ("top", 3, _F.TYPE_SINT64, _OPTIONAL, None, False, None),
        ("bottom", 4, _F.TYPE_SINT64, _OPTIONAL, None, False, None),
    ],
    "HeaderBlock": [
        ("bbox", 1, _F.TYPE_MESSAGE, _OPTIONAL, "HeaderBBox", False, None),
        ("required_features", 4, _F.TYPE_STRING, _REPEATED, None, False, None),
        ("optional_features", 5, _F.TYPE_STRING, _REPEATED, None, False, None),
        ("writingprogram", 16, _F.TYPE_STRING, _OPTIONAL, None, False, None),
        ("source", 17, _F.TYPE_STRING, _OPTIONAL, None, False, None),
        ("osmosis_replication_timestamp", 32, _F.TYPE_INT64, _OPTIONAL, None, False, None),
        ("osmosis_replication_sequence_number", 33, _F.TYPE_INT64, _OPTIONAL, None, False, None),
        ("osmosis_replication_base_url", 34, _F.TYPE_STRING, _OPTIONAL, None, False, None),
    ],
    "StringTable": [
        ("s", 1, _F.TYPE_BYTES, _REPEATED, None, False, None),
    ],
    "Info": [
        ("version", 1, _F.TYPE_INT32, _OPTIONAL, None, False, "-1"),
        ("timestamp", 2, _F.TYPE_INT64, _OPTIONAL, None, False, None),
        ("changeset", 3, _F.TYPE_INT64, _OPTIONAL, None, False, None),
        ("uid", 4, _F.TYPE_INT32, _OPTIONAL, None, False, None),
        ("user_sid", 5, _F.TYPE_UINT32, _OPTIONAL, None, False, None),
        ("visible", 6, _F.TYPE_BOOL, _OPTIONAL, None, False, None),
    ],
    "DenseInfo": [
        ("version", 1, _F.TYPE_INT32, _REPEATED, None, True, None),
        ("timestamp", 2, _F.TYPE_SINT64, _REPEATED, None, True, None),
        ("changeset", 3, _F.TYPE_SINT64, _REPEATED, None, True, None),
        ("uid", 4, _F.TYPE_SINT32, _REPEATED, None, True, None),
        ("user_sid", 5, _F.TYPE_SINT32, _REPEATED, None, True, None),
        ("visible", 6, _F.TYPE_BOOL, _REPEATED, None, True, None),
    ],
    "Node": [
        ("id", 1, _F.TYPE_SINT64, _OPTIONAL, None, False, None),
        ("keys", 2, _F.TYPE_UINT32, _REPEATED, None, True, None),
        ("vals", 3, _F.TYPE_UINT32, _REPEATED, None, True, None),
        ("info", 4, _F.TYPE_MESSAGE, _OPTIONAL, "Info", False, None),
        ("lat", 8, _F.TYPE_SINT64, _OPTIONAL, None, False, None),
        ("lon", 9, _F.TYPE_SINT64, _OPTIONAL, None, False, None),
    ],
    "DenseNodes": [
        ("id", 1, _F.TYPE_SINT64, _REPEATED, None, True, None),
        ("denseinfo", 5, _F.TYPE_MESSAGE, _OPTIONAL, "DenseInfo", False, None),
        ("lat", 8, _F.TYPE_SINT64, _REPEATED, None, True, None),
        ("lon", 9, _F.TYPE_SINT64, _REPEATED, None, True, None),
        ("keys_vals", 10, _F.TYPE_INT32, _REPEATED, None, True, None),
    ],
    "Way": [
        ("id", 1, _F.TYPE_INT64, _OPTIONAL, None, False, None),
        ("keys", 2, _F.TYPE_UINT32, _REPEATED, None, True, None),
        ("vals", 3, _F.TYPE_UINT32, _REPEATED, None, True, None),
        ("info", 4, _F.TYPE_MESSAGE, _OPTIONAL, "Info", False, None),
        ("refs", 8, _F.TYPE_SINT64, _REPEATED, None, True, None),
        ("lat", 9, _F.TYPE_SINT64, _REPEATED, None, True, None),
        ("lon", 10, _F.TYPE_SINT64, _REPEATED, None, True, None),
    ],
    "Relation": [
        ("id", 1, _F.TYPE_INT64, _OPTIONAL, None, False, None),
        ("keys", 2, _F.TYPE_UINT32, _REPEATED, None, True, None),
        ("vals", 3, _F.TYPE_UINT32, _REPEATED, None, True, None),
        ("info", 4, _F.TYPE_MESSAGE, _OPTIONAL, "Info", False, None),
        ("roles_sid", 8, _F.TYPE_INT32, _REPEATED, None, True, None),
        ("memids", 9, _F.TYPE_SINT64, _REPEATED, None, True, None),
        # MemberType enum on the wire: 0 node, 1 way, 2 relation
        ("types", 10, _F.TYPE_INT32, _REPEATED, None, True, None),
    ],
    "ChangeSet": [
        ("id", 1, _F.TYPE_INT64, _OPTIONAL, None, False, None),
    ],
    "PrimitiveGroup": [
        ("nodes", 1, _F.TYPE_MESSAGE, _REPEATED, "Node", False, None),
        ("dense", 2, _F.TYPE_MESSAGE, _OPTIONAL, "DenseNodes", False, None),
        ("ways", 3, _F.TYPE_MESSAGE, _REPEATED, "Way", False, None),
        ("relations", 4, _F.TYPE_MESSAGE, _REPEATED, "Relation", False, None),
        ("changesets", 5, _F.TYPE_MESSAGE, _REPEATED, "ChangeSet", False, None),
    ],
    "PrimitiveBlock": [
        ("stringtable", 1, _F.TYPE_MESSAGE, _OPTIONAL, "StringTable", False, None),
        ("primitivegroup", 2, _F.TYPE_MESSAGE, _REPEATED, "PrimitiveGroup", False, None),
        ("granularity", 17, _F.TYPE_INT32, _OPTIONAL, None, False, "100"),
        ("date_granularity", 18, _F.TYPE_INT32, _OPTIONAL, None, False, "1000"),
        ("lat_offset", 19, _F.TYPE_INT64, _OPTIONAL, None, False, "0"),
        ("lon_offset", 20, _F.TYPE_INT64, _OPTIONAL, None, False, "0"),
    ],
}


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="trackmap/osmpbf.proto",
        package=_PACKAGE,
        syntax="proto2",
    )
    for msg_name, fields in _MESSAGES.items():
        msg = file_proto.message_type.add(name=msg_name)
        for name, number, ftype, label, type_name, packed, default in fields:
            fld = msg.field.add(name=name, number=number, type=ftype, label=label)
            if type_name is not None:
                fld.type_name = f".{_PACKAGE}.{type_name}"
            if packed:
                fld.options.packed = True
            if default is not None:
                fld.default_value = default
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{_PACKAGE}.{name}"))


Blob = _message_class("Blob")
BlobHeader = _message_class("BlobHeader")
HeaderBBox = _message_class("HeaderBBox")
HeaderBlock = _message_class("HeaderBlock")
StringTable = _message_class("StringTable")
Info = _message_class("Info")
DenseInfo = _message_class("DenseInfo")
Node = _message_class("Node")
DenseNodes = _message_class("DenseNodes")
Way = _message_class("Way")
Relation = _message_class("Relation")
PrimitiveGroup = _message_class("PrimitiveGroup")
PrimitiveBlock = _message_class("PrimitiveBlock")
