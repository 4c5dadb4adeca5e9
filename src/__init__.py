"""Shopping cart pricing demo.

Cart totals and discount policies live in :mod:`pricing`, notification
channels in :mod:`messaging`, persistence in :mod:`dao` and the cart
service tying them together in :mod:`app`.
"""
