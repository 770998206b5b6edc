"""
Beam Models.

A beam is a callable ``beam(frequency, az, el) -> JonesMatrix`` giving the
antenna response towards a direction. Flux is transformed by the beam with
a congruence transform, so a beam returning ``a * I`` scales flux by a**2.
"""

import re

import numpy as np

from peelcal.jones.matrices import JonesMatrix


class Beam:
    """Base class for beam models."""

    name = "beam"

    def __call__(self, frequency: float, az: float, el: float) -> JonesMatrix:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class ConstantBeam(Beam):
    """Unit response in every direction."""

    name = "constant"

    def __call__(self, frequency, az, el):
        return JonesMatrix.identity()


class SineBeam(Beam):
    """
    Flux response sin(el)^power, zero below the horizon.

    Parameters
    ----------
    power : float
        Exponent applied to sin(elevation) (default: 1.6)
    """

    name = "sine"

    def __init__(self, power: float = 1.6):
        self.power = float(power)

    def __call__(self, frequency, az, el):
        if el <= 0:
            return JonesMatrix.zero()
        amplitude = np.sin(el) ** (self.power / 2)
        return JonesMatrix(amplitude, 0, 0, amplitude)

    def __repr__(self):
        return f"SineBeam(power={self.power})"

    def __eq__(self, other):
        return isinstance(other, SineBeam) and other.power == self.power

    def __hash__(self):
        return hash(("sine", self.power))


BEAMS = {
    "constant": ConstantBeam,
    "sine": SineBeam,
}

_BEAM_NAME = re.compile(r"^(?P<name>[a-z]+)(?:[-_](?P<power>\d+(?:\.\d*)?|\.\d+))?$")


def get_beam(name: str) -> Beam:
    """
    Look up a beam model by name.

    Names are 'constant', 'sine' or 'sine-<power>' (e.g. 'sine-1.6').

    Raises
    ------
    ValueError
        If the name is not a known beam
    """
    match = _BEAM_NAME.match(name.strip().lower())
    if match is None or match.group("name") not in BEAMS:
        raise ValueError(
            f"Unknown beam model: '{name}'. Choose from: {', '.join(sorted(BEAMS))}"
        )

    beam_class = BEAMS[match.group("name")]
    power = match.group("power")

    if power is None:
        return beam_class()
    if beam_class is not SineBeam:
        raise ValueError(f"Beam model '{match.group('name')}' takes no power parameter")
    return SineBeam(float(power))
