###################
## PETSc objects ##
###################

from .vector import Vector, DECIDE, empty_vector, create_vector, vector_from_array, vector_from_data
from .ghost import GhostVector, LocalFormVector, create_ghost_vector, ghost_update, FORWARD, REVERSE
from .assembly import INSERT, ADD, assemble, assembly_begin, assembly_end, is_assembled, \
                      set_values, set_values_blocked, set_values_local, set_values_blocked_local
from .local import LocalView, READ_ONLY, READ_WRITE, map_local
from .mapping import local_index_set, local_index_set_block, create_local_to_global_mapping, \
                     local_to_global_mapping, set_local_to_global_mapping, has_local_to_global_mapping
from .ops import fill, abs_, exp_, log_, conjugate_, reciprocal_, chop_, scale_, shift_, \
                 findmax, findmin, maximum, minimum, vsum, norm, normalize_, dot, tdot, \
                 pointwise_max, pointwise_min, pointwise_mult, pointwise_divide, pointwise_power, \
                 axpy_, waxpy, aypx_, axpby_, axpbypcz_, maxpy_
