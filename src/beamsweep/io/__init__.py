"""I/O utilities for beamsweep."""

from .tables import read_apertures, read_beam_envelope, read_survey, parse_list
from .stl import write_stl
from .obj import write_obj

__all__ = ['read_survey', 'read_apertures', 'read_beam_envelope', 'parse_list',
           'write_stl', 'write_obj']
