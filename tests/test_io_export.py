import io
import struct

import numpy as np

from beamsweep.io import write_obj, write_stl
from beamsweep.io.obj import write_mtl
from beamsweep.mesh import Mesh, finalize_mesh


def _make_mesh(offset=0.0, **kwargs):
    tris = np.array([
        [(0, 0, offset), (1, 0, offset), (0, 1, offset)],
        [(1, 0, offset), (1, 1, offset), (0, 1, offset)],
    ], dtype=float)
    return finalize_mesh(tris, **kwargs)


def test_write_stl_binary(tmp_path):
    path = tmp_path / 'quad.stl'
    count = write_stl(_make_mesh(), path, binary=True, name='test')
    assert count == 2

    data = path.read_bytes()
    assert len(data) == 80 + 4 + 2 * 50
    assert data[0:4] == b'test'
    assert struct.unpack('<I', data[80:84])[0] == 2
    normal = struct.unpack('<3f', data[84:96])
    assert normal == (0.0, 0.0, 1.0)


def test_write_stl_ascii_multiple_meshes():
    buf = io.StringIO()
    count = write_stl([_make_mesh(), _make_mesh(1.0)], buf, binary=False, name='ascii_test')
    assert count == 4

    text = buf.getvalue()
    assert text.startswith('solid ascii_test')
    assert text.count('facet normal') == 4
    assert text.count('vertex') == 12
    assert text.strip().endswith('endsolid ascii_test')


def test_write_obj(tmp_path):
    first = _make_mesh(name='aperture_0000', color=(1.0, 0.0, 0.0, 1.0))
    second = _make_mesh(2.0, name='aperture_0001')
    obj_path, mtl_path = write_obj([first, Mesh(name='empty'), second], tmp_path / 'tube.obj')

    assert mtl_path == tmp_path / 'tube.mtl'
    lines = obj_path.read_text().splitlines()
    assert lines[1] == 'mtllib tube.mtl'
    assert [l for l in lines if l.startswith('o ')] == ['o aperture_0000_0', 'o aperture_0001_2']
    assert sum(l.startswith('v ') for l in lines) == 8
    assert sum(l.startswith('vn ') for l in lines) == 8
    faces = [l for l in lines if l.startswith('f ')]
    assert faces[0] == 'f 1//1 2//2 3//3'
    assert faces[2] == 'f 5//5 6//6 7//7'

    mtl = mtl_path.read_text()
    assert 'newmtl aperture_0000_0' in mtl
    assert 'Kd 1.000000 0.000000 0.000000' in mtl
    assert 'Kd 0.700000 0.700000 0.700000' in mtl


def test_write_obj_single_mesh_custom_mtl(tmp_path):
    obj_path, mtl_path = write_obj(_make_mesh(name='beam'), tmp_path / 'b.obj', mtl_name='shared.mtl')
    assert mtl_path.name == 'shared.mtl'
    assert 'usemtl beam_0' in obj_path.read_text()


def test_write_mtl_alpha(tmp_path):
    path = tmp_path / 'm.mtl'
    write_mtl([('glass', (0.2, 0.4, 0.6, 0.25))], path)
    text = path.read_text()
    assert 'newmtl glass' in text
    assert 'd 0.250000' in text
    assert 'illum 1' in text
