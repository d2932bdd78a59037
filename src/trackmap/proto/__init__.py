"""Protocol buffer message classes for the OSM PBF format."""

from .osmpbf import (
    Blob,
    BlobHeader,
    DenseInfo,
    DenseNodes,
    HeaderBBox,
    HeaderBlock,
    Info,
    Node,
    PrimitiveBlock,
    PrimitiveGroup,
    Relation,
    StringTable,
    Way,
)

__all__ = [
    "Blob",
    "BlobHeader",
    "DenseInfo",
    "DenseNodes",
    "HeaderBBox",
    "HeaderBlock",
    "Info",
    "Node",
    "PrimitiveBlock",
    "PrimitiveGroup",
    "Relation",
    "StringTable",
    "Way",
]
