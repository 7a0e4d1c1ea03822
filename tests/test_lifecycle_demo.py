from pandas import read_csv

from releasable.scripts.lifecycle_demo import lifecycle_report
from releasable.scripts.lifecycle_demo import main


def releases(df, scenario: str) -> list[str]:
    rows = df[(df['scenario'] == scenario) & (df['kind'] == 'release')]
    return list(rows.sort_values('sequence')['resource'])


def test_deterministic_scenario():
    df = lifecycle_report('deterministic', 16)
    assert releases(df, 'deterministic') == ['block', 'report']


def test_fallback_scenario_skips_subresources():
    df = lifecycle_report('fallback', 16)
    assert releases(df, 'fallback') == ['overflow block', 'base block']


def test_derived_scenario():
    df = lifecycle_report('derived', 16)
    assert releases(df, 'derived') == ['overflow block', 'report', 'base block']


def test_all_scenarios():
    df = lifecycle_report('all', 16)
    assert set(df['scenario']) == {'deterministic', 'fallback', 'derived'}


def test_main_writes_events(tmp_path, capsys):
    output = tmp_path / 'events.tsv'
    main(['--scenario', 'derived', '--block-size', '8', '--output', str(output)])
    assert 'overflow block' in capsys.readouterr().out
    df = read_csv(output, sep='\t')
    assert list(df.columns) == ['scenario', 'sequence', 'kind', 'resource']
    assert releases(df, 'derived') == ['overflow block', 'report', 'base block']
