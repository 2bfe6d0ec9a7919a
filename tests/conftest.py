"""
Pytest configuration and fixtures for objectschema tests.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Generator

import pytest

from objectschema.config import reset_config
from objectschema.loader import SchemaLoader


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def test_env() -> Dict[str, str]:
    """Test environment variables."""
    return {
        "OBJECTSCHEMA_LOG_LEVEL": "debug",
        "OBJECTSCHEMA_LOG_FORMAT": "json",
    }


@pytest.fixture(autouse=True)
def set_test_env(test_env: Dict[str, str]) -> Generator[None, None, None]:
    """Set test environment variables for each test."""
    original = {}
    for key, value in test_env.items():
        original[key] = os.environ.get(key)
        os.environ[key] = value
    reset_config()

    yield

    for key, value in original.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
    reset_config()


@pytest.fixture(autouse=True)
def _clean_state() -> Generator[None, None, None]:
    """Clear the loader cache and any handler installed by configure_logging."""
    SchemaLoader.clear_cache()
    yield
    SchemaLoader.clear_cache()
    root = logging.getLogger("objectschema")
    for handler in list(root.handlers):
        if getattr(handler, "_objectschema", False):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


# ============================================================================
# Schema Fixtures
# ============================================================================


@pytest.fixture
def person_schema_data() -> Dict[str, Any]:
    """Acme schema with a Person whose age is a required, non-negative Number."""
    return {
        "namespace": "ns://acme",
        "version": "1.0.0",
        "description": "Acme people",
        "types": {
            "Person": {
                "description": "A person",
                "properties": {
                    "name": {
                        "type": "String",
                        "constraints": [{"method": "required", "args": []}],
                    },
                    "age": {
                        "type": "Number",
                        "constraints": [
                            {"method": "required", "args": []},
                            {"method": "min", "args": [0]},
                        ],
                    },
                },
            },
        },
    }


@pytest.fixture
def connection_schema_data() -> Dict[str, Any]:
    """Schema A: declares Connection."""
    return {
        "namespace": "ns://a",
        "version": "1.0.0",
        "description": "Networking",
        "types": {
            "Connection": {
                "properties": {
                    "host": {
                        "type": "String",
                        "constraints": [{"method": "required", "args": []}],
                    },
                    "port": {
                        "type": "Number",
                        "constraints": [
                            {"method": "required", "args": []},
                            {"method": "integer", "args": []},
                        ],
                    },
                },
            },
        },
    }


@pytest.fixture
def service_schema_data() -> Dict[str, Any]:
    """Schema B: Service.conn references ns://a/1.0.0#Connection."""
    return {
        "namespace": "ns://b",
        "version": "2.0.0",
        "description": "Services",
        "types": {
            "Service": {
                "properties": {
                    "conn": {
                        "type": "Object",
                        "constraints": [
                            {"method": "required", "args": []},
                            {
                                "method": "objectSchemaType",
                                "args": [
                                    {"namespace": "ns://a", "version": "1.0.0", "type": "Connection"}
                                ],
                            },
                        ],
                    },
                },
            },
        },
    }
