import json
import logging

from gridattack.core.metrics import InfectionState, InfectionStatistics
from gridattack.core.output import GridInformationRecorder, LoggingOutput, OutputHandler
from gridattack.core.simulator import build_model, run
from gridattack.core.types import Steps
from gridattack.grid.boundary import GridBoundaryState, GridWarning


def test_infection_statistics_counts_and_percentages():
    stats = InfectionStatistics.from_states([
        InfectionState.VULNERABLE,
        InfectionState.VULNERABLE,
        InfectionState.INFECTED,
        InfectionState.NOT_VULNERABLE,
    ])
    assert stats.total == 4
    assert stats.num_vulnerable == 2
    assert stats.num_infected == 1
    assert stats.num_patched == 0
    assert stats.perc_vulnerable == 50.0
    assert stats.perc_not_vulnerable == 25.0


def test_empty_population_has_zero_percentages():
    stats = InfectionStatistics.from_states([])
    assert stats.total == 0
    assert stats.perc_infected == 0.0


def test_recorder_frame_has_one_row_per_step(params):
    model = build_model(params)
    recorder = GridInformationRecorder()
    run(model, 5, recorder)

    frame = recorder.to_frame()
    assert list(frame.index) == [0, 1, 2, 3, 4]
    assert frame.index.name == 'step'
    for column in ('frequency', 'perc_infected', 'power_error', 'reserve_current_usage'):
        assert column in frame.columns
    assert frame['total'].iloc[0] == len(model.households)


def test_empty_recorder_gives_empty_frames():
    recorder = GridInformationRecorder()
    assert recorder.to_frame().empty
    assert list(recorder.warnings_frame().columns) == ['step', 'agent_index', 'state', 'critical']


def test_summary_is_json_serializable(params):
    model = build_model(params)
    recorder = GridInformationRecorder()
    run(model, 1, recorder)
    data = json.loads(json.dumps(recorder.infos[0].to_dict()))
    assert data['step'] == 0
    assert set(data) == {'step', 'infection_statistics', 'freq_state', 'power_state', 'reserve_power'}


def test_logging_output_uses_event_severity(caplog):
    output = LoggingOutput()
    warning = GridWarning(GridBoundaryState.LOW, False, agent_index=2, step=Steps(1))
    error = GridWarning(GridBoundaryState.TOO_LOW, True, agent_index=2, step=Steps(4))

    with caplog.at_level(logging.DEBUG, logger='gridattack'):
        output.on_warning(warning)
        output.on_warning(error)

    levels = [r.levelno for r in caplog.records if r.name == 'gridattack.core.output']
    assert levels == [logging.WARNING, logging.ERROR]


def test_snapshots_are_delivered_when_enabled(params):
    params.enable_output = True
    model = build_model(params)
    recorder = GridInformationRecorder()
    run(model, 1, recorder)

    snapshots = recorder.snapshots[0]
    assert [s['index'] for s in snapshots] == list(range(len(model.agents)))
    household = snapshots[3]
    assert household['kind'] == 'Household'
    assert 'power_generation' in household
    assert 'volt_state' in snapshots[2]
    json.dumps(snapshots)


def test_base_handler_ignores_everything(params):
    model = build_model(params)
    result = run(model, 2, OutputHandler())
    assert result.completed_steps == 2
