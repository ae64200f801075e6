import pytest
from s2i.BUILDERS.pipeline import BuildPipeline
from s2i.MODELS.build_result import BuildState
from s2i.errors import PipelineError

def test_full_forward_path():
    pipeline = BuildPipeline("transcript")
    for state in (BuildState.BASE_SELECTED, BuildState.DEPENDENCIES_INSTALLED,
                  BuildState.SOURCE_STAGED, BuildState.BINARY_INSTALLED,
                  BuildState.ENTRYPOINT_BOUND):
        pipeline.advance(state)
    assert pipeline.succeeded
    assert pipeline.finished
    assert pipeline.history[0] == BuildState.PENDING
    assert pipeline.history[-1] == BuildState.ENTRYPOINT_BOUND

def test_dependencies_state_is_optional():
    pipeline = BuildPipeline()
    pipeline.advance(BuildState.BASE_SELECTED)
    pipeline.advance(BuildState.SOURCE_STAGED)
    assert BuildState.DEPENDENCIES_INSTALLED not in pipeline.history

def test_required_states_cannot_be_skipped():
    pipeline = BuildPipeline()
    with pytest.raises(PipelineError, match="Cannot skip"):
        pipeline.advance(BuildState.SOURCE_STAGED)

def test_no_going_back():
    pipeline = BuildPipeline()
    pipeline.advance(BuildState.BASE_SELECTED)
    pipeline.advance(BuildState.SOURCE_STAGED)
    with pytest.raises(PipelineError, match="back"):
        pipeline.advance(BuildState.DEPENDENCIES_INSTALLED)

def test_failure_is_terminal():
    pipeline = BuildPipeline()
    pipeline.advance(BuildState.BASE_SELECTED)
    pipeline.fail()
    assert pipeline.state == BuildState.FAILED
    assert pipeline.finished and not pipeline.succeeded
    with pytest.raises(PipelineError):
        pipeline.advance(BuildState.SOURCE_STAGED)
    with pytest.raises(PipelineError):
        pipeline.fail()

def test_nothing_after_success():
    pipeline = BuildPipeline()
    for state in (BuildState.BASE_SELECTED, BuildState.SOURCE_STAGED,
                  BuildState.BINARY_INSTALLED, BuildState.ENTRYPOINT_BOUND):
        pipeline.advance(state)
    with pytest.raises(PipelineError):
        pipeline.advance(BuildState.FAILED)
