import pytest

from beamsweep.__main__ import main

SURVEY = """x,y,z,theta,phi,psi,type
0,0,0,0,0,0,DRIFT
0,0,1,0,0,0,DRIFT
0,0,2,0,0,0,QUAD
0,0,3,0,0,0,QUAD
"""

APERTURES = """s,name,type,x,y
0,D,DRIFT,"[1, -1, -1, 1]","[1, 1, -1, -1]"
1,D,DRIFT,"[1, -1, -1, 1]","[1, 1, -1, -1]"
2,Q,QUAD,"[1, -1, -1, 1]","[1, 1, -1, -1]"
3,Q,QUAD,"[None]","[1]"
"""

ENVELOPE = """x,y,var_x,var_y,offset_x,offset_y
0,0,1,1,0,0
0,0,1,1,0,0
0,0,1,1,0,0
0,0,1,1,0,0
"""


@pytest.fixture
def sources(tmp_path):
    paths = {}
    for name, text in (('survey', SURVEY), ('aperture', APERTURES), ('envelope', ENVELOPE)):
        paths[name] = tmp_path / f'{name}.csv'
        paths[name].write_text(text, encoding='utf-8')
    return paths


def test_build_obj(sources, tmp_path, capsys):
    out = tmp_path / 'lattice.obj'
    status = main(['build', '--survey', str(sources['survey']),
                   '--aperture', str(sources['aperture']),
                   '--beam', str(sources['envelope']),
                   '--per-run', '--output', str(out)])
    assert status == 0
    assert out.exists()
    assert (tmp_path / 'lattice.mtl').exists()

    text = capsys.readouterr().out
    assert 'aperture: 4 slices, 1 dropped' in text
    assert 'beam: 4 slices, 0 dropped, 2 run(s)' in text
    assert 'Exported to:' in text
    assert sum(l.startswith('o ') for l in out.read_text().splitlines()) == 3


def test_build_stl_with_hull(sources, tmp_path):
    out = tmp_path / 'beam.stl'
    status = main(['build', '--survey', str(sources['survey']),
                   '--beam', str(sources['envelope']), '--hull', '-o', str(out)])
    assert status == 0
    assert out.stat().st_size > 84
    assert (tmp_path / 'beam_hull.obj').exists()


def test_build_with_config(sources, tmp_path, capsys):
    config = tmp_path / 'sweep.yaml'
    config.write_text('segment_break: none\nellipse_resolution: 8\n', encoding='utf-8')
    status = main(['build', '--survey', str(sources['survey']),
                   '--beam', str(sources['envelope']), '--config', str(config)])
    assert status == 0
    assert 'beam: 4 slices, 0 dropped, 1 run(s), 48 triangles' in capsys.readouterr().out


def test_build_needs_a_source(sources, capsys):
    assert main(['build', '--survey', str(sources['survey'])]) == 1
    assert 'Error' in capsys.readouterr().err


def test_build_bad_config(sources, tmp_path):
    config = tmp_path / 'sweep.yaml'
    config.write_text('no_such_option: 1\n', encoding='utf-8')
    assert main(['build', '--survey', str(sources['survey']),
                 '--beam', str(sources['envelope']), '--config', str(config)]) == 1


def test_build_missing_source_fails(sources, tmp_path, capsys):
    status = main(['build', '--survey', str(sources['survey']),
                   '--aperture', str(tmp_path / 'missing.csv')])
    assert status == 1
    assert 'aperture: FAILED' in capsys.readouterr().out


def test_build_unknown_format(sources, tmp_path):
    assert main(['build', '--survey', str(sources['survey']),
                 '--beam', str(sources['envelope']), '-o', str(tmp_path / 'out.ply')]) == 1


def test_check(sources, capsys):
    status = main(['check', '--survey', str(sources['survey']),
                   '--aperture', str(sources['aperture'])])
    assert status == 0
    text = capsys.readouterr().out
    assert 'survey: 4 rows, 4 slices, 0 rejected' in text
    assert 'aperture: 4 rows, 3 accepted, 1 rejected; 3/4 slices paired' in text


def test_check_missing_survey(tmp_path, capsys):
    assert main(['check', '--survey', str(tmp_path / 'missing.csv')]) == 1
    assert 'cannot read source' in capsys.readouterr().err
