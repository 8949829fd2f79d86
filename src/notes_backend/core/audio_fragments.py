from __future__ import annotations

from typing import Union

AudioFragment = Union[bytes, bytearray, memoryview]


def normalize_audio_fragment(fragment: AudioFragment) -> memoryview:
    """Return a flat, unsigned-byte view over an incoming audio fragment.

    Clients hand us audio as immutable ``bytes``, a growable ``bytearray`` or
    an existing ``memoryview``. Everything downstream works on a single
    ``memoryview`` of format ``"B"`` so byte values are always ints in
    [0, 255]. An existing view is re-cast rather than copied. No validation
    happens here; an empty fragment simply yields an empty view.
    """

    view = fragment if isinstance(fragment, memoryview) else memoryview(fragment)
    if view.format != "B" or view.ndim != 1:
        view = view.cast("B")
    return view
