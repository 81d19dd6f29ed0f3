#sampler.py
#Fenwick (binary indexed) tree over non-negative integer weights, used for degree-weighted sampling

import numpy as np


class WeightedSampler:
    """
    Order-statistics structure over integer weights at indices [0, n). Stores:
    - tree (1-based Fenwick array of partial sums)
    Methods:
    - update(index, delta) adds delta to the weight at index, O(log n)
    - query(index) -> prefix sum of weights over [0, index], O(log n)
    - total() -> sum of all weights
    - sample(target) -> smallest index whose prefix sum exceeds target, O(log n)
    """
    def __init__(self, n: int):
        n = int(n)
        if n < 1:
            raise ValueError("WeightedSampler capacity must be >= 1")
        self.n = n
        self.tree = np.zeros(n + 1, dtype = np.int64)
        #largest power of two <= n, first stride of the descent in sample()
        self._top_bit = 1 << (n.bit_length() - 1)

    def _check_index(self, index: int) -> int:
        index = int(index)
        if not 0 <= index < self.n:
            raise IndexError(f"index {index} out of range for capacity {self.n}")
        return index

    def update(self, index: int, delta: int):
        x = self._check_index(index) + 1
        tree = self.tree
        n = self.n
        while x <= n:
            tree[x] += delta
            x += x & -x

    def query(self, index: int) -> int:
        x = self._check_index(index) + 1
        tree = self.tree
        s = 0
        while x > 0:
            s += int(tree[x])
            x -= x & -x
        return s

    def total(self) -> int:
        return self.query(self.n - 1)

    def weight(self, index: int) -> int:
        index = self._check_index(index)
        if index == 0:
            return self.query(0)
        return self.query(index) - self.query(index - 1)

    def sample(self, target: float) -> int:
        """
        Find the smallest index whose prefix sum exceeds target.
        Descends through power-of-two strides, subtracting each consumed partial sum from target.

        Args:
            target (float): a value in [0, total())
        """
        if not 0 <= target < self.total():
            raise ValueError(f"sample target {target} outside [0, {self.total()})")

        tree = self.tree
        n = self.n
        idx = 0
        bit = self._top_bit
        while bit:
            t = idx + bit
            if t <= n and tree[t] <= target:
                target -= tree[t]
                idx = t
            bit >>= 1
        #idx counts the leading weights fully consumed by target, which is the 0-based answer
        return idx
