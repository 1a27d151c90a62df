"""Marker token scanning and stripping on BeautifulSoup trees.

A marked element carries the bare prefix token (``jsb_``) plus one keyed token
per behaviour (``jsb_greet``, ``jsb_widgets/tabs``)::

    <div class="box jsb_ jsb_greet" data-greet='{"name": "Ann"}'></div>
"""

from __future__ import annotations

from bs4.element import Tag

DEFAULT_PREFIX = "jsb_"


class MarkerScanner:
    """Find and strip marker class tokens for a configurable prefix."""

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        self.prefix = prefix

    def set_prefix(self, name: str) -> None:
        """Use ``name + "_"`` as the bare token and keyed marker prefix."""
        self.prefix = f"{name}_"

    @staticmethod
    def tokens(element: Tag) -> list[str]:
        classes = element.get("class")
        if classes is None:
            return []
        if isinstance(classes, str):
            return classes.split()
        return list(classes)

    def scan(self, root: Tag) -> list[Tag]:
        """Return a snapshot of all descendants carrying the bare prefix token.

        The returned list is detached from the tree so stripping tokens while
        iterating it does not change which elements get visited.
        """
        return list(root.find_all(class_=self.prefix))

    def first_key(self, element: Tag) -> str | None:
        """Return the key of the first keyed marker left on ``element``."""
        for token in self.tokens(element):
            if token.startswith(self.prefix) and len(token) > len(self.prefix):
                return token[len(self.prefix):]
        return None

    def strip(self, element: Tag, token: str) -> None:
        """Remove the first occurrence of ``token`` from the element's classes."""
        classes = self.tokens(element)
        if token not in classes:
            return
        classes.remove(token)
        if classes:
            element["class"] = classes
        else:
            del element["class"]

    def strip_prefix(self, element: Tag) -> None:
        self.strip(element, self.prefix)

    def strip_key(self, element: Tag, key: str) -> None:
        self.strip(element, self.prefix + key)
