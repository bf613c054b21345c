"""Splay tree keyed by integers, counting the comparisons it makes."""

from __future__ import annotations

from typing import Any, Callable, Iterator, Optional


class _Node:
    __slots__ = ("key", "record", "left", "right", "parent")

    def __init__(self, key: int, record: Any, parent: Optional["_Node"]) -> None:
        self.key = key
        self.record = record
        self.parent = parent
        self.left: Optional[_Node] = None
        self.right: Optional[_Node] = None


class SplayTree:
    """A self-adjusting binary search tree.

    With ``update_existing`` true, inserting a key already present replaces
    its record; otherwise the insert is refused.
    """

    def __init__(self, update_existing: bool = True) -> None:
        self.update_existing = update_existing
        self._root: Optional[_Node] = None
        self.node_count = 0
        self.comparison_count = 0

    def __len__(self) -> int:
        return self.node_count

    def insert(self, key: int, record: Any) -> bool:
        """Insert ``record`` under ``key``; return whether the tree changed."""
        z = self._root
        p: Optional[_Node] = None
        while z is not None:
            p = z
            self.comparison_count += 1
            if key == z.key:
                if self.update_existing:
                    z.record = record
                    return True
                return False
            self.comparison_count += 1
            z = z.right if key > z.key else z.left

        node = _Node(key, record, p)
        if p is None:
            self._root = node
        elif p.key < node.key:
            p.right = node
        else:
            p.left = node
        self._splay(node)
        self.node_count += 1
        return True

    def find(self, key: int) -> Any:
        """Return the record stored under ``key``, or None."""
        z = self._root
        while z is not None:
            self.comparison_count += 1
            if key == z.key:
                return z.record
            self.comparison_count += 1
            z = z.right if key > z.key else z.left
        return None

    def find_nearest(self, key: int) -> Any:
        """Return the record with the largest key not above ``key``, or None."""
        z = self._root
        nearest: Optional[_Node] = None
        while z is not None:
            self.comparison_count += 1
            if key == z.key:
                return z.record
            self.comparison_count += 1
            if key > z.key:
                if nearest is None or nearest.key < z.key:
                    nearest = z
                z = z.right
            else:
                z = z.left
        return nearest.record if nearest is not None else None

    def remove(self, key: int) -> Any:
        """Remove ``key`` and return its record, or None if it is absent."""
        z = self._root
        while z is not None and z.key != key:
            self.comparison_count += 1
            z = z.right if key > z.key else z.left
        if z is None:
            return None
        self._splay(z)
        if z.left is None:
            self._replace(z, z.right)
        elif z.right is None:
            self._replace(z, z.left)
        else:
            y = z.right
            while y.left is not None:
                y = y.left
            if y.parent is not z:
                self._replace(y, y.right)
                y.right = z.right
                y.right.parent = y
            self._replace(z, y)
            y.left = z.left
            y.left.parent = y
        self.node_count -= 1
        return z.record

    def keys(self) -> Iterator[int]:
        """Yield the keys in ascending order."""
        stack: list[_Node] = []
        node = self._root
        while stack or node is not None:
            while node is not None:
                stack.append(node)
                node = node.left
            node = stack.pop()
            yield node.key
            node = node.right

    def format(self, tree_mode: bool = False) -> str:
        """Render the keys, bracketing subtrees when ``tree_mode`` is set."""
        parts: list[str] = []
        work: list[Any] = [self._root] if self._root is not None else []
        while work:
            item = work.pop()
            if isinstance(item, str):
                parts.append(item)
                continue
            pending: list[Any] = []
            if tree_mode:
                pending.append("(")
            if item.left is not None:
                pending.append(item.left)
            pending.append(f" {item.key} ")
            if item.right is not None:
                pending.append(item.right)
            if tree_mode:
                pending.append(")")
            work.extend(reversed(pending))
        body = "".join(parts)
        return (
            f"[{body}] {self.node_count} nodes, "
            f"{self.comparison_count} comparisons"
        )

    def show(self, tree_mode: bool = False) -> None:
        """Print the rendering of the tree."""
        print(self.format(tree_mode))

    def clear(self, free_fun: Optional[Callable[[Any], Any]] = None) -> None:
        """Drop every node, passing each record to ``free_fun`` children first."""
        order: list[_Node] = []
        stack = [self._root] if self._root is not None else []
        while stack:
            node = stack.pop()
            order.append(node)
            if node.left is not None:
                stack.append(node.left)
            if node.right is not None:
                stack.append(node.right)
        if free_fun is not None:
            for node in reversed(order):
                free_fun(node.record)
        self._root = None
        self.node_count = 0

    def _rotate_left(self, x: _Node) -> None:
        y = x.right
        if y is not None:
            x.right = y.left
            if y.left is not None:
                y.left.parent = x
            y.parent = x.parent
        if x.parent is None:
            self._root = y
        elif x is x.parent.left:
            x.parent.left = y
        else:
            x.parent.right = y
        if y is not None:
            y.left = x
        x.parent = y

    def _rotate_right(self, x: _Node) -> None:
        y = x.left
        if y is not None:
            x.left = y.right
            if y.right is not None:
                y.right.parent = x
            y.parent = x.parent
        if x.parent is None:
            self._root = y
        elif x is x.parent.left:
            x.parent.left = y
        else:
            x.parent.right = y
        if y is not None:
            y.right = x
        x.parent = y

    def _splay(self, x: _Node) -> None:
        while x.parent is not None:
            parent = x.parent
            grand = parent.parent
            if grand is None:
                if parent.left is x:
                    self._rotate_right(parent)
                else:
                    self._rotate_left(parent)
            elif parent.left is x and grand.left is parent:
                self._rotate_right(grand)
                self._rotate_right(x.parent)
            elif parent.right is x and grand.right is parent:
                self._rotate_left(grand)
                self._rotate_left(x.parent)
            elif parent.left is x and grand.right is parent:
                self._rotate_right(parent)
                self._rotate_left(x.parent)
            else:
                self._rotate_left(parent)
                self._rotate_right(x.parent)

    def _replace(self, u: _Node, v: Optional[_Node]) -> None:
        if u.parent is None:
            self._root = v
        elif u is u.parent.left:
            u.parent.left = v
        else:
            u.parent.right = v
        if v is not None:
            v.parent = u.parent