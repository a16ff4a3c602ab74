"""
Shared fixtures: a small package with a JSON document model and its sources.

Layout of the ``tome`` package:

    tome                      package (src/lib.rs)
      net                     module (src/net.rs)
        Client                struct, with `impl Client` and `impl Transport for Client`
          send, status        inherent methods
          Transport::send     interface method
        Transport             trait with a bodiless `send`
        connect               function, re-exported at the root
      connect                 `pub use net::connect;`
      internal                private module with a restricted `helper`
      version                 function
"""
import json
from pathlib import Path

import pytest

from docskel.document import JsonModelSource, LoadedPackage


LIB_RS = """\
//! Terminal tome.

pub use net::connect;

/// Crate version.
pub fn version() -> &'static str {
    "0.1.0"
}
"""

NET_RS = """\
//! Networking.

pub struct Client {
    pub addr: String,
}

impl Client {
    /// Send a message.
    pub fn send(&self, msg: &str) -> usize {
        msg.len()
    }

    pub fn status(&self) -> u8 {
        0
    }
}

pub trait Transport {
    fn send(&self, msg: &str) -> usize;
}

impl Transport for Client {
    fn send(&self, msg: &str) -> usize {
        Client::send(self, msg)
    }
}

pub fn connect(addr: &str) -> Client {
    Client { addr: addr.to_string() }
}
"""

INTERNAL_RS = """\
pub(crate) fn helper() -> u8 {
    1
}
"""


def span(file: str, start: int, end: int) -> dict:
    return {"file": file, "start_line": start, "start_column": 0, "end_line": end, "end_column": 1}


def tome_items() -> dict:
    """Items of the sample package, keyed by id."""
    return {
        "0": {
            "kind": "package", "name": "tome", "docs": "Terminal tome.",
            "span": span("src/lib.rs", 1, 8), "children": ["1", "20", "30", "40"],
        },
        "1": {
            "kind": "module", "name": "net", "parent": "0", "docs": "Networking.",
            "signature": "pub mod net", "span": span("src/net.rs", 1, 30),
            "children": ["2", "3", "6", "8", "11"],
        },
        "2": {
            "kind": "record", "name": "Client", "parent": "1", "docs": "A network client.",
            "signature": "pub struct Client {\n    pub addr: String,\n}",
            "span": span("src/net.rs", 3, 5),
        },
        "3": {
            "kind": "implementation", "name": "", "parent": "1", "for_type": "2",
            "signature": "impl Client", "span": span("src/net.rs", 7, 16), "children": ["4", "5"],
        },
        "4": {
            "kind": "associated_function", "name": "send", "parent": "3", "docs": "Send a message.",
            "signature": "pub fn send(&self, msg: &str) -> usize", "span": span("src/net.rs", 9, 11),
        },
        "5": {
            "kind": "associated_function", "name": "status", "parent": "3",
            "signature": "pub fn status(&self) -> u8", "span": span("src/net.rs", 13, 15),
        },
        "6": {
            "kind": "interface", "name": "Transport", "parent": "1",
            "signature": "pub trait Transport", "span": span("src/net.rs", 18, 20), "children": ["7"],
        },
        "7": {
            "kind": "associated_function", "name": "send", "parent": "6", "has_body": False,
            "signature": "fn send(&self, msg: &str) -> usize", "span": span("src/net.rs", 19, 19),
        },
        "8": {
            "kind": "implementation", "name": "Transport", "parent": "1", "for_type": "2",
            "interface": "6", "signature": "impl Transport for Client",
            "span": span("src/net.rs", 22, 26), "children": ["9"],
        },
        "9": {
            "kind": "associated_function", "name": "send", "parent": "8", "visibility": "private",
            "signature": "fn send(&self, msg: &str) -> usize", "span": span("src/net.rs", 23, 25),
        },
        "11": {
            "kind": "function", "name": "connect", "parent": "1",
            "signature": "pub fn connect(addr: &str) -> Client", "span": span("src/net.rs", 28, 30),
        },
        "20": {
            "kind": "reexport", "name": "connect", "parent": "0", "target": "11",
            "source": "net::connect", "signature": "pub use net::connect;",
            "span": span("src/lib.rs", 3, 3),
        },
        "30": {
            "kind": "module", "name": "internal", "parent": "0", "visibility": "private",
            "signature": "mod internal", "span": span("src/internal.rs", 1, 3), "children": ["31"],
        },
        "31": {
            "kind": "function", "name": "helper", "parent": "30", "visibility": "restricted",
            "signature": "pub(crate) fn helper() -> u8", "span": span("src/internal.rs", 1, 3),
        },
        "40": {
            "kind": "function", "name": "version", "parent": "0", "docs": "Crate version.",
            "signature": "pub fn version() -> &'static str", "span": span("src/lib.rs", 5, 8),
        },
    }


def model_document(items: dict, root: str = "0", **extra) -> dict:
    data = {
        "format_version": 1,
        "package_name": "tome",
        "root": root,
        "language": "rust",
        "items": items,
    }
    data.update(extra)
    return data


def write_package(directory: Path, items: dict, sources: dict[str, str] = None, **extra) -> Path:
    """Write a docmodel.json (and source files) into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    for name, text in (sources or {}).items():
        path = directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    (directory / "docmodel.json").write_text(
        json.dumps(model_document(items, **extra), indent=2), encoding="utf-8"
    )
    return directory


@pytest.fixture
def tome_dir(tmp_path) -> Path:
    """Directory holding the sample package's model and sources."""
    return write_package(
        tmp_path / "tome",
        tome_items(),
        {"src/lib.rs": LIB_RS, "src/net.rs": NET_RS, "src/internal.rs": INTERNAL_RS},
    )


@pytest.fixture
def tome(tome_dir) -> LoadedPackage:
    return JsonModelSource().load(tome_dir)
