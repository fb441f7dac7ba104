"""
Tries of context property paths that carry untrusted data.

A ContextPropertyMap node with no children is a leaf: a concrete property an
outside actor controls, e.g. github.event.pull_request.title. A node with
children is an object that contains such properties. The child key '*'
matches any property name or array element.

Search roots map a context root name (github, inputs, steps, ...) to its
trie. The built-in tables are shared module constants; the create_* builders
return fresh roots so the rule layer can describe reusable-workflow inputs or
tainted step outputs without touching shared state.
"""

import copy
import logging
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional

logger = logging.getLogger(__name__)

WILDCARD = "*"


class ContextPropertyMap:
    """
    One node of an untrusted-path trie.

    Nodes are wired up once, at construction: passing children to the
    constructor sets their parent. There is no API to change a node afterwards,
    so a trie can be shared between any number of checkers.
    """

    __slots__ = ("name", "parent", "_children")

    def __init__(self, name: str, *children: "ContextPropertyMap"):
        self.name = name
        self.parent: Optional[ContextPropertyMap] = None
        kids = {}
        for child in children:
            if child.parent is not None:
                raise ValueError(f"property {child.name!r} already belongs to {child.parent.path!r}")
            child.parent = self
            kids[child.name.lower()] = child
        self._children = MappingProxyType(kids)

    @property
    def children(self) -> Mapping[str, "ContextPropertyMap"]:
        return self._children

    @property
    def is_leaf(self) -> bool:
        return not self._children

    def find_object_prop(self, name: str) -> Optional["ContextPropertyMap"]:
        """Child for a property name, falling back to the '*' child."""
        child = self._children.get(name.lower())
        if child is not None:
            return child
        return self._children.get(WILDCARD)

    def find_array_elem(self) -> Optional["ContextPropertyMap"]:
        """The '*' child, used for index access and object filters on arrays."""
        return self._children.get(WILDCARD)

    @property
    def path(self) -> str:
        names = []
        node: Optional[ContextPropertyMap] = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return ".".join(reversed(names))

    def iter_leaf_paths(self) -> Iterator[str]:
        """Yield the dotted path of every leaf under this node, sorted."""
        if self.is_leaf:
            yield self.path
            return
        for key in sorted(self._children):
            yield from self._children[key].iter_leaf_paths()

    def clone(self) -> "ContextPropertyMap":
        """Deep copy without a parent, for building derived tries."""
        return ContextPropertyMap(self.name, *(c.clone() for c in self._children.values()))

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return f"ContextPropertyMap({self.path!r}, children={sorted(self._children)})"


ContextPropertySearchRoots = Mapping[str, ContextPropertyMap]

_p = ContextPropertyMap


def _author_fields(name: str) -> ContextPropertyMap:
    return _p(name, _p("email"), _p("name"))


def _commit_fields(name: str) -> ContextPropertyMap:
    return _p(name, _p("message"), _author_fields("author"), _author_fields("committer"))


def _github_untrusted(privileged: bool) -> ContextPropertyMap:
    pull_request_head_repo = [_p("default_branch")]
    pull_request_extra = []
    issue_extra = []
    workflow_run_extra = []
    if privileged:
        # fork metadata and labels only reach privileged runs with write tokens
        pull_request_head_repo += [_p("description"), _p("homepage")]
        pull_request_extra = [
            _p("labels", _p(WILDCARD, _p("name"), _p("description"))),
        ]
        issue_extra = [
            _p("labels", _p(WILDCARD, _p("name"), _p("description"))),
        ]
        workflow_run_extra = [
            _p("head_repository", _p("description"), _p("homepage")),
        ]

    return _p(
        "github",
        _p(
            "event",
            _p("comment", _p("body")),
            _p("commits", _p(WILDCARD, _p("message"), _author_fields("author"))),
            _p("discussion", _p("body"), _p("title")),
            _commit_fields("head_commit"),
            _p("issue", _p("body"), _p("title"), *issue_extra),
            _p("pages", _p(WILDCARD, _p("page_name"))),
            _p(
                "pull_request",
                _p("body"),
                _p("title"),
                _p("head", _p("ref"), _p("label"), _p("repo", *pull_request_head_repo)),
                *pull_request_extra,
            ),
            _p("review", _p("body")),
            _p("review_comment", _p("body")),
            _p(
                "workflow_run",
                _p("head_branch"),
                _p("display_title"),
                _commit_fields("head_commit"),
                _p("pull_requests", _p(WILDCARD, _p("head", _p("ref")))),
                *workflow_run_extra,
            ),
        ),
        _p("head_ref"),
    )


BUILTIN_UNTRUSTED_INPUTS: ContextPropertySearchRoots = MappingProxyType({
    "github": _github_untrusted(privileged=False),
})

BUILTIN_PRIVILEGED_UNTRUSTED_INPUTS: ContextPropertySearchRoots = MappingProxyType({
    "github": _github_untrusted(privileged=True),
})

# Triggers whose runs get a write token or secrets while reacting to
# outside contributions.
PRIVILEGED_TRIGGERS = frozenset({
    "pull_request_target",
    "workflow_run",
    "issue_comment",
    "issues",
    "discussion_comment",
})


def untrusted_inputs_for_triggers(triggers: Iterable[str]) -> ContextPropertySearchRoots:
    """Pick the built-in table for a workflow's triggers."""
    if any(t.lower() in PRIVILEGED_TRIGGERS for t in triggers):
        return BUILTIN_PRIVILEGED_UNTRUSTED_INPUTS
    return BUILTIN_UNTRUSTED_INPUTS


# ---------------------------------------------------------------------------
# Derived roots
# ---------------------------------------------------------------------------

def _base_roots(privileged: bool) -> dict[str, ContextPropertyMap]:
    base = BUILTIN_PRIVILEGED_UNTRUSTED_INPUTS if privileged else BUILTIN_UNTRUSTED_INPUTS
    return {name: root.clone() for name, root in base.items()}


def _to_dict(node: ContextPropertyMap) -> dict:
    return {c.name: _to_dict(c) for c in node.children.values()}


def _from_dict(name: str, tree: dict) -> ContextPropertyMap:
    return _p(name, *(_from_dict(k, v) for k, v in sorted(tree.items())))


def _split_path(path: str) -> list[str]:
    segments = [s.strip().lower() for s in path.split(".")]
    if not path.strip() or any(not s for s in segments):
        raise ValueError(f"invalid property path: {path!r}")
    return segments


def build_search_roots(
    paths: Iterable[str],
    base: Optional[ContextPropertySearchRoots] = None,
) -> ContextPropertySearchRoots:
    """
    Merge dotted paths into a copy of `base`.

    Each path names a leaf, e.g. "github.event.issue.title" or
    "inputs.*". A path that ends inside an existing object keeps that
    object's children. A new property next to a '*' child starts as a copy
    of the '*' subtree, so naming it never removes what the wildcard matched.

    Raises:
        ValueError: If a path is empty, has an empty segment, or goes below
            an existing leaf (e.g. "github.head_ref.x").
    """
    trees: dict[str, dict] = {}
    for name, root in (base or {}).items():
        trees[name] = _to_dict(root)

    for path in paths:
        root_name, *rest = _split_path(path)
        existed = root_name in trees
        node = trees.setdefault(root_name, {})
        walked = root_name
        for segment in rest:
            if existed and not node:
                raise ValueError(f"invalid property path: {path!r} goes below untrusted leaf {walked!r}")
            existed = segment in node
            if not existed and segment != WILDCARD and WILDCARD in node:
                node[segment] = copy.deepcopy(node[WILDCARD])
                existed = True
            node = node.setdefault(segment, {})
            walked = f"{walked}.{segment}"
        logger.debug("Marked %s as untrusted", path)

    return MappingProxyType({name: _from_dict(name, tree) for name, tree in trees.items()})


def create_untrusted_inputs_for_reusable_workflow(
    input_names: Optional[Iterable[str]],
    privileged: bool = False,
) -> ContextPropertySearchRoots:
    """
    Roots for expressions inside a reusable workflow.

    Every declared input is treated as untrusted. When the callee's inputs
    cannot be enumerated (no names given), `inputs.*` is used instead.
    """
    names = [n for n in (input_names or []) if n]
    roots = _base_roots(privileged)
    if names:
        roots["inputs"] = _p("inputs", *(_p(n) for n in dict.fromkeys(n.lower() for n in names)))
    else:
        roots["inputs"] = _p("inputs", _p(WILDCARD))
    logger.debug("Reusable workflow roots: inputs=%s", sorted(roots["inputs"].children))
    return MappingProxyType(roots)


def create_untrusted_inputs_with_tainted_reusable_workflow_inputs(
    tainted_inputs: Optional[Iterable[str]],
    privileged: bool = False,
) -> ContextPropertySearchRoots:
    """
    Roots where only the named reusable-workflow inputs are tainted.

    Used when the caller has traced untrusted values into specific `with:`
    inputs. With no tainted inputs the `inputs` root is left out entirely.
    """
    names = [n for n in (tainted_inputs or []) if n]
    roots = _base_roots(privileged)
    if names:
        roots["inputs"] = _p("inputs", *(_p(n) for n in dict.fromkeys(n.lower() for n in names)))
    return MappingProxyType(roots)


def create_untrusted_inputs_with_tainted_step_outputs(
    tainted_outputs: Mapping[str, Iterable[str]],
    privileged: bool = False,
) -> ContextPropertySearchRoots:
    """
    Roots where `steps.<id>.outputs.<name>` is tainted for each given output.

    Args:
        tainted_outputs: step id -> names of outputs that received untrusted data.
    """
    steps = []
    for step_id, outputs in sorted(tainted_outputs.items()):
        names = sorted({o.lower() for o in outputs if o})
        if not names:
            continue
        steps.append(_p(step_id.lower(), _p("outputs", *(_p(n) for n in names))))

    roots = _base_roots(privileged)
    if steps:
        roots["steps"] = _p("steps", *steps)
    logger.debug("Tainted step outputs: %d step(s)", len(steps))
    return MappingProxyType(roots)
