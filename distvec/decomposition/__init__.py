"""
Module for describing how a global vector is split into contiguous pieces
among processors

The module defines a partition class and the balanced splitting rule

    Partition
    local_size / local_start

Each processor owns one contiguous range of global indices. When only the
global length is given the entries are balanced, the first (N % nprocs)
processors receive one extra entry (or block).

"""

from .decomposition import Partition, local_size, local_start
