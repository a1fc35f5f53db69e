"""
Document store.

``DocumentStore`` owns one document: its pages, the selection cursor, the
variable list and the immutable bindings. Every public mutation computes a
new immutable ``DocumentState`` with the pure functions of
``trellis.layers`` and commits it in one step. A commit records the
previous state in the history and then notifies subscribers.

Not-found conditions (unknown layer, page, parent or variable) are logged
as warnings and leave the document unchanged. Removing the last page raises
``LastPageError``.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import trellis.constants as constants
import trellis.errors as errors
import trellis.layers.ids as ids
import trellis.layers.mutations as mutations
import trellis.layers.traversal as traversal
import trellis.layers.types as types
import trellis.registry.components as components
import trellis.registry.functions as functions
import trellis.store.history as history
import trellis.store.migrations as migrations

if _typing.TYPE_CHECKING:
    import trellis.config as config

_logger = _logging.getLogger(__name__)

ImmutableBindings = _abc.Mapping[str, _abc.Mapping[str, bool]]


def _default_page() -> types.Layer:
    return types.Layer(
        id=constants.DEFAULT_PAGE_ID,
        type=constants.PAGE_LAYER_TYPE,
        name=constants.DEFAULT_PAGE_NAME,
        props=dict(constants.DEFAULT_PAGE_PROPS),
        children=(),
    )


@_dataclasses.dataclass(frozen=True)
class DocumentState:
    """
    Immutable snapshot of a document.

    Snapshots are compared structurally. Unchanged subtrees are shared
    between consecutive snapshots, so equality checks mostly hit identity.
    """

    pages: tuple[types.Layer, ...]
    selected_page_id: str
    selected_layer_id: str | None = None
    variables: tuple[types.Variable, ...] = ()
    immutable_bindings: ImmutableBindings = _dataclasses.field(default_factory=dict)
    """Layer id to prop name to immutability flag."""

    @classmethod
    def default(cls) -> DocumentState:
        """A document with a single empty page."""
        page = _default_page()
        return cls(pages=(page,), selected_page_id=page.id)

    def get_page(self, page_id: str) -> types.Layer | None:
        return next((page for page in self.pages if page.id == page_id), None)

    def get_variable(self, variable_id: str) -> types.Variable | None:
        return next((v for v in self.variables if v.id == variable_id), None)

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to the persisted document format."""
        return {
            "version": migrations.CURRENT_VERSION,
            "pages": [page.to_dict() for page in self.pages],
            "selectedPageId": self.selected_page_id,
            "selectedLayerId": self.selected_layer_id,
            "variables": [variable.to_dict() for variable in self.variables],
            "immutableBindings": {
                layer_id: dict(props) for layer_id, props in self.immutable_bindings.items()
            },
        }

    @classmethod
    def from_dict(cls, data: _abc.Mapping[str, _typing.Any]) -> DocumentState:
        """
        Create from a persisted document of the current version.

        Raises:
            DocumentFormatError: If the data does not have the document shape.
        """
        try:
            pages = tuple(types.Layer.from_dict(page) for page in data["pages"])
            variables = tuple(
                types.Variable.from_dict(variable) for variable in data.get("variables") or []
            )
            bindings = {
                str(layer_id): {str(prop): bool(flag) for prop, flag in props.items()}
                for layer_id, props in (data.get("immutableBindings") or {}).items()
            }
        except (KeyError, TypeError, AttributeError) as e:
            raise errors.DocumentFormatError(f"Malformed document: {e!r}") from e

        if not pages:
            raise errors.DocumentFormatError("Document has no pages")

        selected_page_id = data.get("selectedPageId")
        if not any(page.id == selected_page_id for page in pages):
            selected_page_id = pages[0].id

        return cls(
            pages=pages,
            selected_page_id=selected_page_id,
            selected_layer_id=data.get("selectedLayerId"),
            variables=variables,
            immutable_bindings=bindings,
        )


@_dataclasses.dataclass(frozen=True)
class StoreEvent:
    """Notification sent to subscribers after a change is committed."""

    action: str
    """Name of the store method that made the change."""
    state: DocumentState
    previous: DocumentState
    details: dict[str, _typing.Any] = _dataclasses.field(default_factory=dict)


Listener = _abc.Callable[[StoreEvent], None]


def _without_bindings(
    bindings: ImmutableBindings,
    removed: _abc.Mapping[str, _abc.Iterable[str] | None],
) -> dict[str, dict[str, bool]]:
    """Copy ``bindings`` minus the given props (None drops the whole layer)."""
    result: dict[str, dict[str, bool]] = {}
    for layer_id, props in bindings.items():
        if layer_id in removed and removed[layer_id] is None:
            continue
        dropped = set(removed.get(layer_id) or ())
        kept = {prop: flag for prop, flag in props.items() if prop not in dropped}
        if kept:
            result[layer_id] = kept
    return result


class DocumentStore:
    """
    Mutable holder of one document and its public editing API.

    The store is single-threaded; callers serialize their own access.
    Subscribers run synchronously after each committed change. A failing
    subscriber is logged and never undoes the change.
    """

    def __init__(
        self,
        registry: components.ComponentRegistry | None = None,
        *,
        function_registry: functions.FunctionRegistry | None = None,
        history_limit: int | None = None,
        state: DocumentState | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            registry: Component registry used for defaults. An empty
                registry is used when omitted.
            function_registry: Function registry handed to renderers.
            history_limit: Maximum undo depth (unbounded when None).
            state: Initial document. A single empty page when omitted.
        """
        self.registry = registry if registry is not None else components.ComponentRegistry()
        self.function_registry = function_registry
        self._state = state if state is not None else DocumentState.default()
        self._history: history.HistoryManager[DocumentState] = history.HistoryManager(
            limit=history_limit
        )
        self._listeners: list[Listener] = []

    @classmethod
    def from_settings(
        cls,
        settings: config.Settings,
        registry: components.ComponentRegistry | None = None,
        **kwargs: _typing.Any,
    ) -> DocumentStore:
        """Create a store configured from settings.

        Loads the component registry file named in the settings when no
        registry is given.
        """
        if registry is None:
            registry = settings.load_component_registry()
        return cls(registry, history_limit=settings.history.limit, **kwargs)

    @classmethod
    def from_dict(
        cls,
        data: _abc.Mapping[str, _typing.Any],
        registry: components.ComponentRegistry | None = None,
        **kwargs: _typing.Any,
    ) -> DocumentStore:
        """Create a store holding a persisted document, migrating it first."""
        store = cls(registry, **kwargs)
        store.initialize_from_dict(data)
        return store

    # -------------------------------------------------------------------------
    # State access
    # -------------------------------------------------------------------------

    @property
    def state(self) -> DocumentState:
        return self._state

    @property
    def pages(self) -> tuple[types.Layer, ...]:
        return self._state.pages

    @property
    def selected_page_id(self) -> str:
        return self._state.selected_page_id

    @property
    def selected_layer_id(self) -> str | None:
        return self._state.selected_layer_id

    @property
    def variables(self) -> tuple[types.Variable, ...]:
        return self._state.variables

    @property
    def immutable_bindings(self) -> ImmutableBindings:
        return self._state.immutable_bindings

    @property
    def history(self) -> history.HistoryManager[DocumentState]:
        return self._history

    def to_dict(self) -> dict[str, _typing.Any]:
        """Serialize the document in the persisted format."""
        return self._state.to_dict()

    # -------------------------------------------------------------------------
    # Subscriptions and commits
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> _abc.Callable[[], None]:
        """
        Register a listener for committed changes.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                _logger.warning("Store listener failed after %s: %s", event.action, e)

    def _set_state(
        self,
        action: str,
        state: DocumentState,
        **details: _typing.Any,
    ) -> bool:
        previous = self._state
        if state is previous or state == previous:
            _logger.debug("%s left the document unchanged", action)
            return False
        self._state = state
        self._history.push(previous)
        self._notify(StoreEvent(action=action, state=state, previous=previous, details=details))
        return True

    def _replace(self, action: str, **changes: _typing.Any) -> bool:
        details = changes.pop("details", {})
        return self._set_state(action, _dataclasses.replace(self._state, **changes), **details)

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def _registry_bindings(
        self,
        pages: _abc.Iterable[types.Layer],
    ) -> dict[str, dict[str, bool]]:
        """Immutable bindings declared by the registry that the layers still use."""
        bindings: dict[str, dict[str, bool]] = {}
        for layer in traversal.iter_layers(pages):
            definition = self.registry.get(layer.type)
            if definition is None:
                continue
            for binding in definition.default_variable_bindings:
                value = layer.props.get(binding.prop_name)
                if (
                    binding.immutable
                    and isinstance(value, types.VariableReference)
                    and value.variable_id == binding.variable_id
                ):
                    bindings.setdefault(layer.id, {})[binding.prop_name] = True
        return bindings

    def initialize(
        self,
        pages: _abc.Sequence[types.Layer],
        selected_page_id: str | None = None,
        selected_layer_id: str | None = None,
        variables: _abc.Sequence[types.Variable] | None = None,
        immutable_bindings: ImmutableBindings | None = None,
    ) -> None:
        """
        Replace the whole document.

        Immutable bindings declared by the registry are restored for layers
        that still carry the bound reference. Loading is not an undoable
        step: the history is cleared.

        Raises:
            LastPageError: If ``pages`` is empty.
        """
        if not pages:
            raise errors.LastPageError("Cannot initialize a document without pages")

        page_ids = {page.id for page in pages}
        if selected_page_id not in page_ids:
            selected_page_id = pages[0].id

        bindings = {
            layer_id: dict(props) for layer_id, props in (immutable_bindings or {}).items()
        }
        for layer_id, props in self._registry_bindings(pages).items():
            bindings.setdefault(layer_id, {}).update(props)

        state = DocumentState(
            pages=tuple(pages),
            selected_page_id=selected_page_id,
            selected_layer_id=selected_layer_id or None,
            variables=tuple(variables or ()),
            immutable_bindings=bindings,
        )
        with self._history.suspended():
            self._set_state("initialize", state)
        self._history.clear()

    def initialize_from_dict(self, data: _abc.Mapping[str, _typing.Any]) -> None:
        """
        Replace the document with a persisted one, migrating it first.

        Raises:
            UnsupportedVersionError: If the document is newer than supported.
            DocumentFormatError: If the data does not have the document shape.
        """
        state = DocumentState.from_dict(migrations.migrate(data))
        self.initialize(
            state.pages,
            state.selected_page_id,
            state.selected_layer_id,
            state.variables,
            state.immutable_bindings,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def find_layers_for_page_id(self, page_id: str) -> tuple[types.Layer, ...]:
        """Child layers of a page (empty for unknown pages)."""
        page = self._state.get_page(page_id)
        if page is None or not traversal.has_layer_children(page):
            return ()
        return _typing.cast(tuple[types.Layer, ...], page.children)

    def find_layer_by_id(self, layer_id: str | None) -> types.Layer | None:
        """Find a layer of the selected page, or the selected page itself."""
        if not layer_id:
            return None
        if layer_id == self._state.selected_page_id:
            return self._state.get_page(layer_id)
        return traversal.find_layer_recursive(
            self.find_layers_for_page_id(self._state.selected_page_id), layer_id
        )

    def is_layer_a_page(self, layer_id: str) -> bool:
        return self._state.get_page(layer_id) is not None

    # -------------------------------------------------------------------------
    # Layers
    # -------------------------------------------------------------------------

    def add_component_layer(
        self,
        layer_type: str,
        parent_id: str,
        parent_position: int | None = None,
    ) -> types.Layer | None:
        """
        Create a layer of ``layer_type`` under ``parent_id`` and select it.

        The layer gets the registry's prop defaults and default children,
        and its default variable bindings for variables that exist.

        Returns:
            The new layer, or None when the type or parent is unknown or
            the parent holds text.
        """
        if layer_type not in self.registry:
            _logger.warning("Component type %s is not registered.", layer_type)
            return None

        parent = traversal.find_layer_recursive(self._state.pages, parent_id)
        if parent is None:
            _logger.warning("Parent layer with ID %s not found.", parent_id)
            return None
        if not mutations.accepts_children(parent):
            _logger.warning("Layer %s has text children and cannot hold layers.", parent_id)
            return None

        state = self._state
        new_layer = mutations.create_component_layer(
            layer_type,
            self.registry,
            layer_id=ids.create_unique_id(traversal.collect_ids(state.pages)),
            apply_variable_bindings=True,
            variables=state.variables,
        )

        bindings = {layer_id: dict(props) for layer_id, props in state.immutable_bindings.items()}
        definition = self.registry.get_or_raise(layer_type)
        for binding in definition.default_variable_bindings:
            if binding.immutable and state.get_variable(binding.variable_id) is not None:
                bindings.setdefault(new_layer.id, {})[binding.prop_name] = True

        self._replace(
            "add_component_layer",
            pages=tuple(mutations.add_layer(state.pages, new_layer, parent_id, parent_position)),
            selected_layer_id=new_layer.id,
            immutable_bindings=bindings,
            details={"layer_id": new_layer.id, "layer_type": layer_type, "parent_id": parent_id},
        )
        return new_layer

    def add_page_layer(self, page_name: str) -> types.Layer:
        """Append a new empty page and select it."""
        state = self._state
        page = types.Layer(
            id=ids.create_unique_id(traversal.collect_ids(state.pages)),
            type=constants.PAGE_LAYER_TYPE,
            name=page_name,
            props=dict(constants.DEFAULT_PAGE_PROPS),
            children=(),
        )
        self._replace(
            "add_page_layer",
            pages=(*state.pages, page),
            selected_page_id=page.id,
            selected_layer_id=page.id,
            details={"layer_id": page.id},
        )
        return page

    def duplicate_layer(self, layer_id: str) -> types.Layer | None:
        """
        Duplicate a layer and its subtree with fresh ids.

        A duplicated page is appended and selected. Any other layer is
        placed right after the original.

        Returns:
            The clone, or None when the layer is unknown.
        """
        state = self._state
        pages, clone = mutations.duplicate_layer(state.pages, layer_id)
        if clone is None:
            return None

        changes: dict[str, _typing.Any] = {"pages": tuple(pages)}
        if self.is_layer_a_page(layer_id):
            changes["selected_page_id"] = clone.id
        self._replace(
            "duplicate_layer",
            **changes,
            details={"layer_id": layer_id, "clone_id": clone.id},
        )
        return clone

    def remove_layer(self, layer_id: str) -> None:
        """
        Remove a layer and its subtree, or a whole page.

        The selected layer is cleared when it was removed. When the selected
        page is removed the first remaining page is selected.

        Raises:
            LastPageError: If ``layer_id`` is the only page.
        """
        state = self._state
        removed = traversal.find_layer_recursive(state.pages, layer_id)
        if removed is None:
            _logger.warning("Layer with ID %s not found.", layer_id)
            return

        pages = tuple(mutations.remove_layer(state.pages, layer_id))
        remaining = traversal.collect_ids(pages)

        selected_page_id = state.selected_page_id
        if selected_page_id not in remaining:
            selected_page_id = pages[0].id
        selected_layer_id = state.selected_layer_id
        if selected_layer_id is not None and selected_layer_id not in remaining:
            selected_layer_id = None

        removed_ids = traversal.collect_ids([removed])
        bindings = _without_bindings(
            state.immutable_bindings, {removed_id: None for removed_id in removed_ids}
        )

        self._replace(
            "remove_layer",
            pages=pages,
            selected_page_id=selected_page_id,
            selected_layer_id=selected_layer_id,
            immutable_bindings=bindings,
            details={"layer_id": layer_id},
        )

    def update_layer(
        self,
        layer_id: str,
        props: _abc.Mapping[str, types.PropValue],
        fields: _abc.Mapping[str, _typing.Any] | None = None,
    ) -> bool:
        """
        Shallow-merge props into a layer of the selected page.

        Args:
            layer_id: Layer to update; the selected page itself is allowed.
            props: Props merged over the layer's props.
            fields: Other fields to overwrite (``type``, ``name``,
                ``children``).

        Returns:
            True if a layer matched.
        """
        state = self._state
        pages = mutations.update_layer(
            state.pages, state.selected_page_id, layer_id, props, fields
        )
        if pages is None:
            _logger.warning("Layer with ID %s was not found.", layer_id)
            return False
        self._replace(
            "update_layer",
            pages=tuple(pages),
            details={"layer_id": layer_id, "props": sorted(props)},
        )
        return True

    def move_layer(
        self,
        source_id: str,
        target_parent_id: str,
        target_position: int | None = None,
    ) -> bool:
        """
        Move a layer under a new parent, keeping its identity.

        Returns:
            True if the document changed.
        """
        state = self._state
        pages = mutations.move_layer(state.pages, source_id, target_parent_id, target_position)
        return self._replace(
            "move_layer",
            pages=tuple(pages),
            details={"layer_id": source_id, "parent_id": target_parent_id},
        )

    def select_layer(self, layer_id: str) -> None:
        """Select a layer of the selected page, or the page itself."""
        if self.find_layer_by_id(layer_id) is None:
            _logger.warning("Layer with ID %s not found on page %s.", layer_id, self.selected_page_id)
            return
        self._replace("select_layer", selected_layer_id=layer_id)

    def select_page(self, page_id: str) -> None:
        if self._state.get_page(page_id) is None:
            _logger.warning("Page with ID %s not found.", page_id)
            return
        self._replace("select_page", selected_page_id=page_id)

    # -------------------------------------------------------------------------
    # Variables
    # -------------------------------------------------------------------------

    def add_variable(
        self,
        name: str,
        type: types.VariableType,
        default_value: _typing.Any,
    ) -> types.Variable:
        """
        Create a variable with a fresh id.

        Raises:
            ValueError: If ``type`` is not a valid variable type.
        """
        if type not in types.VARIABLE_TYPES:
            raise ValueError(
                f"Invalid variable type '{type}'. Valid types: {', '.join(types.VARIABLE_TYPES)}"
            )
        state = self._state
        variable = types.Variable(
            id=ids.create_unique_id({v.id for v in state.variables}),
            name=name,
            type=type,
            default_value=default_value,
        )
        self._replace(
            "add_variable",
            variables=(*state.variables, variable),
            details={"variable_id": variable.id},
        )
        return variable

    def update_variable(self, variable_id: str, **updates: _typing.Any) -> bool:
        """
        Update a variable's ``name``, ``type`` or ``default_value``.

        Returns:
            True if the variable exists.

        Raises:
            ValueError: If an update names another field or an invalid type.
        """
        invalid = set(updates) - {"name", "type", "default_value"}
        if invalid:
            raise ValueError(f"Cannot update variable fields: {', '.join(sorted(invalid))}")
        if "type" in updates and updates["type"] not in types.VARIABLE_TYPES:
            raise ValueError(f"Invalid variable type '{updates['type']}'")

        state = self._state
        if state.get_variable(variable_id) is None:
            _logger.warning("Variable with ID %s not found.", variable_id)
            return False

        self._replace(
            "update_variable",
            variables=tuple(
                _dataclasses.replace(v, **updates) if v.id == variable_id else v
                for v in state.variables
            ),
            details={"variable_id": variable_id},
        )
        return True

    def _fallback_children(self, layer_type: str) -> str:
        definition = self.registry.get(layer_type)
        if definition is not None and isinstance(definition.default_children, str):
            return definition.default_children
        return ""

    def remove_variable(self, variable_id: str) -> None:
        """
        Delete a variable and every reference to it.

        Props bound to the variable are reset to their schema default, or
        deleted when the component declares no default. Text children bound
        to it fall back to the component's default text.
        """
        state = self._state
        if state.get_variable(variable_id) is None:
            _logger.warning("Variable with ID %s not found.", variable_id)
            return

        cleaned: dict[str, list[str]] = {}

        def clean(layer: types.Layer, _parent: types.Layer | None) -> types.Layer:
            changes: dict[str, _typing.Any] = {}
            bound = [
                prop_name
                for prop_name, value in layer.props.items()
                if isinstance(value, types.VariableReference) and value.variable_id == variable_id
            ]
            if bound:
                props = dict(layer.props)
                for prop_name in bound:
                    found, default = self.registry.get_default_value(layer.type, prop_name)
                    if found:
                        props[prop_name] = default
                    else:
                        del props[prop_name]
                changes["props"] = props
                cleaned[layer.id] = bound
            if (
                isinstance(layer.children, types.VariableReference)
                and layer.children.variable_id == variable_id
            ):
                changes["children"] = self._fallback_children(layer.type)
            return _dataclasses.replace(layer, **changes) if changes else layer

        pages = tuple(traversal.visit_layer(page, None, clean) for page in state.pages)
        self._replace(
            "remove_variable",
            pages=pages,
            variables=tuple(v for v in state.variables if v.id != variable_id),
            immutable_bindings=_without_bindings(state.immutable_bindings, cleaned),
            details={"variable_id": variable_id},
        )

    def bind_prop_to_variable(self, layer_id: str, prop_name: str, variable_id: str) -> bool:
        """Bind a prop of a layer on the selected page to a variable."""
        if self._state.get_variable(variable_id) is None:
            _logger.warning("Variable with ID %s not found.", variable_id)
            return False
        return self.update_layer(layer_id, {prop_name: types.VariableReference(variable_id)})

    def unbind_prop_from_variable(self, layer_id: str, prop_name: str) -> bool:
        """
        Replace a bound prop with its schema default (or an empty string).

        Immutable bindings are refused.
        """
        if self.is_binding_immutable(layer_id, prop_name):
            _logger.warning(
                "Cannot unbind immutable variable binding for %s on layer %s", prop_name, layer_id
            )
            return False

        layer = self.find_layer_by_id(layer_id)
        if layer is None:
            _logger.warning("Layer with ID %s not found.", layer_id)
            return False

        found, default = self.registry.get_default_value(layer.type, prop_name)
        if not found or default is None:
            default = ""
        return self.update_layer(layer_id, {prop_name: default})

    def is_binding_immutable(self, layer_id: str, prop_name: str) -> bool:
        return self._state.immutable_bindings.get(layer_id, {}).get(prop_name) is True

    def set_immutable_binding(self, layer_id: str, prop_name: str, immutable: bool) -> None:
        bindings = {
            key: dict(props) for key, props in self._state.immutable_bindings.items()
        }
        bindings.setdefault(layer_id, {})[prop_name] = immutable
        self._replace(
            "set_immutable_binding",
            immutable_bindings=bindings,
            details={"layer_id": layer_id, "prop_name": prop_name},
        )

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def undo(self) -> bool:
        """Restore the state before the last change. Returns False if none."""
        restored = self._history.undo(self._state)
        if restored is None:
            return False
        with self._history.suspended():
            self._set_state("undo", restored)
        return True

    def redo(self) -> bool:
        """Reapply the last undone change. Returns False if none."""
        restored = self._history.redo(self._state)
        if restored is None:
            return False
        with self._history.suspended():
            self._set_state("redo", restored)
        return True

    def can_undo(self) -> bool:
        return self._history.can_undo()

    def can_redo(self) -> bool:
        return self._history.can_redo()
