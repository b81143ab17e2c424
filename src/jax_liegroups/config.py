"""Numerical settings shared by the SO(3) and SE(3) modules.

These are plain module-level defaults. Operations that expose a tolerance
argument use them when the caller does not pass one.
"""

# Below this rotation angle (radians) closed-form trigonometric coefficients
# are replaced by their Taylor expansions.
SMALL_ANGLE_TOLERANCE = 1e-6

# Conditional re-projection of a Transformation happens when |1 - det(C)|
# exceeds this value.
REPROJECT_TOLERANCE = 1e-6

# Number of Bernoulli numbers tabulated for the inverse left Jacobian series.
MAX_JACINV_SERIES_TERMS = 20
