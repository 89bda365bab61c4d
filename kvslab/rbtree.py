"""Red-black tree mapping ordered keys to values, with ordered range scans."""

from __future__ import annotations

import enum
from typing import Any, Hashable, Iterator, Optional


class _Color(enum.Enum):
    RED = 0
    BLACK = 1


class _Node:
    __slots__ = ("key", "value", "left", "right", "parent", "color")

    def __init__(self, key: Any, value: Any, color: _Color) -> None:
        self.key = key
        self.value = value
        self.left: Optional[_Node] = None
        self.right: Optional[_Node] = None
        self.parent: Optional[_Node] = None
        self.color = color


def _color(node: Optional[_Node]) -> _Color:
    return _Color.BLACK if node is None else node.color


def _sibling(node: _Node) -> Optional[_Node]:
    parent = node.parent
    return parent.right if node is parent.left else parent.left


class RBTree:
    """Balanced binary search tree keyed by any totally ordered values.

    The most recently found node is remembered so that a lookup followed by an
    insert of the same key replaces the value without walking the tree again.
    """

    def __init__(self) -> None:
        self._root: Optional[_Node] = None
        self._last_visited: Optional[_Node] = None
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def __contains__(self, key: Hashable) -> bool:
        return self._lookup_node(key) is not None

    def __iter__(self) -> Iterator[Any]:
        for key, _ in self.items():
            yield key

    # Lookup -----------------------------------------------------------

    def _lookup_node(self, key: Any) -> Optional[_Node]:
        node = self._root
        while node is not None:
            if key == node.key:
                self._last_visited = node
                return node
            node = node.left if key < node.key else node.right
        return None

    def _lookup_closest_node(self, key: Any) -> Optional[_Node]:
        """The node holding ``key``, or else the one with the smallest larger key."""
        node = self._root
        closest = None
        while node is not None:
            if key == node.key:
                self._last_visited = node
                return node
            if key < node.key:
                closest = node
                node = node.left
            else:
                node = node.right
        return closest

    def lookup(self, key: Any) -> Any:
        """Value stored under ``key``, or None if the key is absent."""
        node = self._lookup_node(key)
        return None if node is None else node.value

    # Rotations ----------------------------------------------------------

    def _replace_node(self, old: _Node, new: Optional[_Node]) -> None:
        parent = old.parent
        if parent is None:
            self._root = new
        elif old is parent.left:
            parent.left = new
        else:
            parent.right = new
        if new is not None:
            new.parent = parent

    def _rotate_left(self, node: _Node) -> None:
        right = node.right
        self._replace_node(node, right)
        node.right = right.left
        if right.left is not None:
            right.left.parent = node
        right.left = node
        node.parent = right

    def _rotate_right(self, node: _Node) -> None:
        left = node.left
        self._replace_node(node, left)
        node.left = left.right
        if left.right is not None:
            left.right.parent = node
        left.right = node
        node.parent = left

    # Insertion ---------------------------------------------------------

    def insert(self, key: Any, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        last = self._last_visited
        if last is not None and key == last.key:
            last.value = value
            return
        inserted = _Node(key, value, _Color.RED)
        if self._root is None:
            self._root = inserted
            self._size = 1
        else:
            node = self._root
            while True:
                if key == node.key:
                    node.value = value
                    return
                if key < node.key:
                    if node.left is None:
                        node.left = inserted
                        break
                    node = node.left
                else:
                    if node.right is None:
                        node.right = inserted
                        break
                    node = node.right
            self._size += 1
            inserted.parent = node
        self._fix_after_insert(inserted)

    def _fix_after_insert(self, node: _Node) -> None:
        while True:
            parent = node.parent
            if parent is None:
                node.color = _Color.BLACK
                return
            if parent.color is _Color.BLACK:
                return
            grandparent = parent.parent
            uncle = _sibling(parent)
            if _color(uncle) is _Color.RED:
                parent.color = _Color.BLACK
                uncle.color = _Color.BLACK
                grandparent.color = _Color.RED
                node = grandparent
                continue
            if node is parent.right and parent is grandparent.left:
                self._rotate_left(parent)
                node = node.left
            elif node is parent.left and parent is grandparent.right:
                self._rotate_right(parent)
                node = node.right
            parent = node.parent
            grandparent = parent.parent
            parent.color = _Color.BLACK
            grandparent.color = _Color.RED
            if node is parent.left:
                self._rotate_right(grandparent)
            else:
                self._rotate_left(grandparent)
            return

    # Deletion ------------------------------------------------------------

    def delete(self, key: Any) -> bool:
        """Remove ``key``; return whether it was present."""
        node = self._lookup_node(key)
        if node is None:
            return False
        self._size -= 1
        if node.left is not None and node.right is not None:
            pred = node.left
            while pred.right is not None:
                pred = pred.right
            node.key = pred.key
            node.value = pred.value
            node = pred
        child = node.left if node.right is None else node.right
        if node.color is _Color.BLACK:
            node.color = _color(child)
            self._fix_before_delete(node)
        self._replace_node(node, child)
        if node.parent is None and child is not None:
            child.color = _Color.BLACK
        self._last_visited = None
        return True

    def _fix_before_delete(self, node: _Node) -> None:
        while node.parent is not None:
            sibling = _sibling(node)
            if _color(sibling) is _Color.RED:
                node.parent.color = _Color.RED
                sibling.color = _Color.BLACK
                if node is node.parent.left:
                    self._rotate_left(node.parent)
                else:
                    self._rotate_right(node.parent)
            sibling = _sibling(node)
            parent = node.parent
            children_black = (
                _color(sibling) is _Color.BLACK
                and _color(sibling.left) is _Color.BLACK
                and _color(sibling.right) is _Color.BLACK
            )
            if parent.color is _Color.BLACK and children_black:
                sibling.color = _Color.RED
                node = parent
                continue
            if parent.color is _Color.RED and children_black:
                sibling.color = _Color.RED
                parent.color = _Color.BLACK
                return
            if (
                node is parent.left
                and _color(sibling) is _Color.BLACK
                and _color(sibling.left) is _Color.RED
                and _color(sibling.right) is _Color.BLACK
            ):
                sibling.color = _Color.RED
                sibling.left.color = _Color.BLACK
                self._rotate_right(sibling)
            elif (
                node is parent.right
                and _color(sibling) is _Color.BLACK
                and _color(sibling.right) is _Color.RED
                and _color(sibling.left) is _Color.BLACK
            ):
                sibling.color = _Color.RED
                sibling.right.color = _Color.BLACK
                self._rotate_left(sibling)
            sibling = _sibling(node)
            sibling.color = parent.color
            parent.color = _Color.BLACK
            if node is parent.left:
                sibling.right.color = _Color.BLACK
                self._rotate_left(parent)
            else:
                sibling.left.color = _Color.BLACK
                self._rotate_right(parent)
            return

    # Scans ----------------------------------------------------------------

    def _fill_scan(self, node: Optional[_Node], limit: int, out: list) -> None:
        if node is None:
            return
        if node.left is not None:
            self._fill_scan(node.left, limit, out)
        if len(out) < limit:
            out.append((node.key, node.value))
        if len(out) < limit:
            self._fill_scan(node.right, limit, out)

    def lookup_n(self, key: Any, n: int) -> list[tuple[Any, Any]]:
        """Up to ``n`` (key, value) pairs in key order, starting at the first key >= ``key``."""
        if n <= 0:
            return []
        start = self._lookup_closest_node(key)
        if start is None:
            return []
        out = [(start.key, start.value)]
        self._fill_scan(start.right, n, out)
        node = start
        while len(out) < n and node.parent is not None:
            parent = node.parent
            if parent.left is node:
                out.append((parent.key, parent.value))
                if len(out) < n:
                    self._fill_scan(parent.right, n, out)
            node = parent
        return out

    def items(self) -> Iterator[tuple[Any, Any]]:
        """All (key, value) pairs in ascending key order."""
        stack: list[_Node] = []
        node = self._root
        while stack or node is not None:
            while node is not None:
                stack.append(node)
                node = node.left
            node = stack.pop()
            yield node.key, node.value
            node = node.right

    # Checking ----------------------------------------------------------------

    def verify(self) -> int:
        """Check the red-black and ordering invariants; return the black height.

        Raises ValueError describing the first violation found.
        """
        if _color(self._root) is not _Color.BLACK:
            raise ValueError("root is not black")
        if self._root is not None and self._root.parent is not None:
            raise ValueError("root has a parent")
        count = 0

        def walk(node: Optional[_Node], low: Any, high: Any, has_low: bool, has_high: bool) -> int:
            nonlocal count
            if node is None:
                return 1
            count += 1
            if has_low and not low < node.key:
                raise ValueError(f"key {node.key!r} out of order")
            if has_high and not node.key < high:
                raise ValueError(f"key {node.key!r} out of order")
            for child in (node.left, node.right):
                if child is not None and child.parent is not node:
                    raise ValueError(f"broken parent link below {node.key!r}")
            if node.color is _Color.RED and (
                _color(node.left) is _Color.RED or _color(node.right) is _Color.RED
            ):
                raise ValueError(f"red node {node.key!r} has a red child")
            left = walk(node.left, low, node.key, has_low, True)
            right = walk(node.right, node.key, high, True, has_high)
            if left != right:
                raise ValueError(f"unequal black heights below {node.key!r}")
            return left + (1 if node.color is _Color.BLACK else 0)

        height = walk(self._root, None, None, False, False)
        if count != self._size:
            raise ValueError(f"tree holds {count} nodes but reports {self._size}")
        return height