"""
Shared pytest fixtures for Trellis tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import pathlib as _pathlib
import unittest.mock as _mock

import pydantic as _pydantic
import pytest as _pytest

import trellis.config as config
import trellis.layers as layers
import trellis.registry as registry
import trellis.store as store


# =============================================================================
# Component schemas used across tests
# =============================================================================


class ButtonProps(_pydantic.BaseModel):
    label: str = "Click me"
    variant: str = "default"
    disabled: bool = False


class ContainerProps(_pydantic.BaseModel):
    className: str = ""


class BadgeProps(_pydantic.BaseModel):
    label: str = "New"
    tone: str = "neutral"


class InputProps(_pydantic.BaseModel):
    placeholder: str
    value: str | None = None


BRAND_VARIABLE_ID = "brand-name"


def make_registry() -> registry.ComponentRegistry:
    """Registry with a handful of components.

    - Button: props with defaults, text children "Button"
    - div / span: containers
    - Card: default child layers
    - Badge: immutable default binding to the ``brand-name`` variable
    - Input: a required prop without default
    """
    reg = registry.ComponentRegistry()
    reg.register(
        "Button",
        registry.ComponentDefinition(schema=ButtonProps, default_children="Button"),
    )
    reg.register("div", registry.ComponentDefinition(schema=ContainerProps))
    reg.register("span", registry.ComponentDefinition(schema=ContainerProps, default_children=""))
    reg.register(
        "Card",
        registry.ComponentDefinition(
            schema=ContainerProps,
            default_children=[
                layers.Layer(id="tpl-header", type="span", name="Header", children="Title"),
                layers.Layer(
                    id="tpl-body",
                    type="div",
                    name="Body",
                    children=[layers.Layer(id="tpl-text", type="span", children="Body text")],
                ),
            ],
        ),
    )
    reg.register(
        "Badge",
        registry.ComponentDefinition(
            schema=BadgeProps,
            default_children="",
            default_variable_bindings=[
                registry.VariableBinding(
                    prop_name="label", variable_id=BRAND_VARIABLE_ID, immutable=True
                ),
                registry.VariableBinding(prop_name="tone", variable_id="tone-var"),
            ],
        ),
    )
    reg.register("Input", registry.ComponentDefinition(schema=InputProps))
    return reg


# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR_PREFIX = "TRELLIS_"


# =============================================================================
# Fixtures
# =============================================================================


@_pytest.fixture
def component_registry() -> registry.ComponentRegistry:
    """A fresh component registry with the test components."""
    return make_registry()


@_pytest.fixture
def page() -> layers.Layer:
    """
    A page with a small tree:

        page-1 (div)
        ├── button-1 (Button, "Submit")
        └── row-1 (div)
            ├── text-1 (span, "Hello")
            └── inner-1 (div, no children)
    """
    return layers.Layer(
        id="page-1",
        type="div",
        name="Page 1",
        props={"className": "page"},
        children=[
            layers.Layer(
                id="button-1",
                type="Button",
                name="Button",
                props={"label": "Submit"},
                children="Submit",
            ),
            layers.Layer(
                id="row-1",
                type="div",
                name="Row",
                props={"className": "row"},
                children=[
                    layers.Layer(id="text-1", type="span", name="Text", children="Hello"),
                    layers.Layer(id="inner-1", type="div", name="Inner"),
                ],
            ),
        ],
    )


@_pytest.fixture
def document_store(
    component_registry: registry.ComponentRegistry,
    page: layers.Layer,
) -> store.DocumentStore:
    """A store initialized with the ``page`` fixture as its only page."""
    doc = store.DocumentStore(component_registry)
    doc.initialize([page])
    return doc


@_pytest.fixture
def document_manager(tmp_path: _pathlib.Path) -> store.DocumentManager:
    """DocumentManager with a temporary directory for test isolation."""
    return store.DocumentManager(tmp_path / "documents")


@_pytest.fixture
def clean_env(tmp_path: _pathlib.Path) -> dict[str, str]:
    """
    Return environment dict with TRELLIS_ keys removed.

    The user config directory points at an empty temporary directory so a
    developer's own config cannot leak into tests.
    """
    env = {k: v for k, v in _os.environ.items() if not k.startswith(ENV_KEYS_TO_CLEAR_PREFIX)}
    env["TRELLIS_CONFIG_DIR"] = str(tmp_path / "user-config")
    return env


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]):
    """
    Context manager that isolates tests from environment variables.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings.construct_without_dotenv()
    """
    return _mock.patch.dict(_os.environ, clean_env, clear=True)


@_pytest.fixture
def clean_settings(
    isolated_env,
    tmp_path: _pathlib.Path,
    monkeypatch: _pytest.MonkeyPatch,
) -> config.Settings:
    """
    Settings instance isolated from environment, .env and project config.
    """
    project = tmp_path / "project"
    (project / ".trellis").mkdir(parents=True)
    monkeypatch.chdir(project)
    with isolated_env:
        return config.Settings.construct_without_dotenv()
