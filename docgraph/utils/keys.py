"""Identifier helpers shared by storage, vector and graph code.

Every id produced here is deterministic in its inputs so that repeated
writes land on the same row, vector or object.
"""

import re

_WHITESPACE = re.compile(r"\s+")

DOCUMENT_NODE_PREFIX = "DOC:"


def document_key(user_id: str, document_id: str, filename: str) -> str:
    """users/{user_id}/documents/{document_id}/{filename}"""
    return f"users/{user_id}/documents/{document_id}/{filename}"


def object_filename(title: str) -> str:
    """Title as a single, non-relative key segment."""
    name = title.replace("/", "_")
    if not name.strip("."):
        return "document"
    return name


def vector_id(document_id: str, chunk_index: int) -> str:
    return f"{document_id}-{chunk_index}"


def document_node_id(document_id: str) -> str:
    return f"{DOCUMENT_NODE_PREFIX}{document_id}"


def edge_id(source: str, relation: str, target: str) -> str:
    return _WHITESPACE.sub("_", f"{source}-{relation}-{target}")


def mention_edge_id(document_id: str, node_id: str) -> str:
    return f"docLink-{document_id}-{node_id}"
