"""Combinatorial number system for combinations stored as bitsets.

A combination of at most ``max_k`` elements chosen from ``n`` is mapped to a
single integer. The mapping is contiguous and one-to-one. Smaller
combinations come before larger ones. Within one size, lexicographic order
is preserved.
"""

from __future__ import annotations

from bisect import bisect_right


def triangle_index(row: int, column: int, n: int) -> int:
    """Index of ``(row, column)`` in Pascal's triangle stored column-major up to row ``n``."""
    return column * (2 * n - column + 1) // 2 + row


class CombinatorialEncoder:
    """Encodes combinations of up to ``max_k`` of ``n`` elements as integers.

    The empty combination is 0. The singletons ``{0}, ..., {n-1}`` are
    ``1..n``. The pairs follow, and so on for each larger size.
    """

    def __init__(self, n: int, max_k: int) -> None:
        if n < 0 or max_k < 0:
            raise ValueError("n and max_k must be non-negative")
        if max_k > n:
            raise ValueError("max_k cannot exceed n")
        self.n = n
        self.max_k = max_k

        binom = [0] * ((n + 1) * (n + 2) // 2)
        binom[0] = 1
        for row in range(1, n + 1):
            for column in range(row + 1):
                if column in (0, row):
                    value = 1
                else:
                    value = self._lookup(binom, row - 1, column - 1) + self._lookup(
                        binom, row - 1, column
                    )
                binom[triangle_index(row, column, n)] = value
        self.binom: tuple[int, ...] = tuple(binom)

        offsets = []
        running_total = 0
        for k in range(max_k + 1):
            offsets.append(running_total)
            running_total += binom[triangle_index(n, k, n)]
        offsets.append(running_total)
        self.size_offsets: tuple[int, ...] = tuple(offsets)

    def _lookup(self, triangle: list[int], row: int, column: int) -> int:
        if row < column:
            return 0
        return triangle[triangle_index(row, column, self.n)]

    def _choose(self, row: int, column: int) -> int:
        if row < column:
            return 0
        return self.binom[triangle_index(row, column, self.n)]

    def encode(self, bitset: int) -> int:
        """Return the index of the combination given as a bitset."""
        if bitset < 0:
            raise ValueError("bitset must be non-negative")
        if bitset >> self.n:
            raise ValueError(f"bitset has elements beyond the {self.n} available")
        k = bitset.bit_count()
        if k > self.max_k:
            raise ValueError(
                f"can only encode up to {self.max_k} items in a combination, got {k}"
            )

        local_idx = 0
        remaining = bitset
        counter = 1
        while remaining:
            lowest = remaining & -remaining
            elem = lowest.bit_length() - 1
            remaining ^= lowest
            local_idx += self._choose(elem, counter)
            counter += 1

        return self.size_offsets[k] + local_idx

    def decode(self, index: int) -> int:
        """Return the bitset of the combination with the given index."""
        if not 0 <= index < self.maximum_index():
            raise ValueError(
                f"index {index} out of range 0..{self.maximum_index()}"
            )
        k = max(bisect_right(self.size_offsets, index) - 1, 0)

        bitset = 0
        local_idx = index - self.size_offsets[k]
        while k > 0:
            elem = self.n
            value = self._choose(elem, k)
            while value > local_idx:
                elem -= 1
                value = self._choose(elem, k)
            bitset |= 1 << elem
            local_idx -= value
            k -= 1

        return bitset

    def maximum_index(self) -> int:
        """Number of encodable combinations (one past the largest index)."""
        return self.size_offsets[self.max_k + 1]