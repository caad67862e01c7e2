import os

import pytest
from result import Err, Ok

from double_pipe.errors import ForkFailed, PipeCreateFailed
from double_pipe.model import ChildExit, Command, Role
from double_pipe.pipes import Endpoint
from double_pipe.supervisor import ExitPolicy, Supervisor, SupervisorState

from helpers import cat_into, open_fds, printf


def _run(supervisor: Supervisor, head: Command, leg1: Command, leg2: Command) -> list[ChildExit]:
    match supervisor.run(head, leg1, leg2):
        case Ok(exits):
            return exits
        case Err(e):
            pytest.fail(f"unexpected {e}")


def test_both_legs_receive_the_head_output(tmp_path, no_children_left):
    out1, out2 = tmp_path / "leg1", tmp_path / "leg2"
    supervisor = Supervisor()

    exits = _run(supervisor, printf("hello, twice\n"), cat_into(out1), cat_into(out2))

    assert out1.read_bytes() == b"hello, twice\n"
    assert out2.read_bytes() == b"hello, twice\n"
    assert [child_exit.exit_code for child_exit in exits] == [0, 0, 0, 0]
    assert supervisor.state is SupervisorState.DONE


def test_spawns_and_reaps_four_children_in_order(tmp_path, no_children_left):
    supervisor = Supervisor()

    exits = _run(supervisor, printf("x"), cat_into(tmp_path / "a"), cat_into(tmp_path / "b"))

    assert [child.role for child in supervisor.children] == [
        Role.HEAD,
        Role.RELAY,
        Role.LEG1,
        Role.LEG2,
    ]
    assert [child_exit.role for child_exit in exits] == [child.role for child in supervisor.children]
    assert len({child_exit.pid for child_exit in exits}) == 4


def test_large_payload_arrives_intact(tmp_path, no_children_left):
    payload = os.urandom(1024 * 1024)
    source = tmp_path / "payload"
    source.write_bytes(payload)
    out1, out2 = tmp_path / "leg1", tmp_path / "leg2"

    _run(Supervisor(), Command(("cat", str(source))), cat_into(out1), cat_into(out2))

    assert out1.read_bytes() == payload
    assert out2.read_bytes() == payload


def test_odd_block_size_keeps_stream_intact(tmp_path, no_children_left):
    text = "".join(f"line {i}\n" for i in range(2000))
    out1, out2 = tmp_path / "leg1", tmp_path / "leg2"

    _run(Supervisor(block_size=7), printf(text), cat_into(out1), cat_into(out2))

    assert out1.read_text() == text
    assert out2.read_text() == text


def test_leaves_no_descriptor_open(proc_fds, tmp_path, no_children_left):
    before = open_fds()

    _run(Supervisor(), printf("leak check"), cat_into(tmp_path / "a"), cat_into(tmp_path / "b"))

    assert open_fds() == before


def test_child_failures_are_reaped_not_raised(tmp_path, capfd, no_children_left):
    out1 = tmp_path / "leg1"
    missing = Command(("dp-no-such-program-anywhere",))

    exits = _run(Supervisor(), printf("still delivered"), cat_into(out1), missing)

    codes = {child_exit.role: child_exit.exit_code for child_exit in exits}
    assert codes[Role.LEG2] == 1
    assert codes[Role.LEG1] == 0
    assert out1.read_bytes() == b"still delivered"
    assert "execvp failed" in capfd.readouterr().err
    assert ExitPolicy.ZERO.exit_code(exits) == 0
    assert ExitPolicy.WORST.exit_code(exits) == 1


def test_signalled_head_reports_shell_exit_code(tmp_path, no_children_left):
    head = Command(("sh", "-c", "kill -TERM $$"))

    exits = _run(Supervisor(), head, cat_into(tmp_path / "a"), cat_into(tmp_path / "b"))

    assert exits[0].role is Role.HEAD
    assert exits[0].exit_code == 128 + 15


def test_pipe_failure_aborts_before_spawning(monkeypatch):
    def failing_pipe():
        raise OSError(24, "Too many open files")

    monkeypatch.setattr(os, "pipe", failing_pipe)
    monkeypatch.setattr(os, "fork", lambda: pytest.fail("nothing may be forked"))
    supervisor = Supervisor()

    result = supervisor.run(printf("x"), Command(("cat",)), Command(("cat",)))

    assert isinstance(result, Err)
    assert isinstance(result.err_value.cause, PipeCreateFailed)
    assert result.err_value.spawned == []
    assert supervisor.state is SupervisorState.IDLE


def test_fork_failure_aborts_the_sequence(monkeypatch, proc_fds, tmp_path, no_children_left):
    real_fork = os.fork
    forks: list[int] = []

    def fork_once():
        if forks:
            raise OSError(11, "Resource temporarily unavailable")
        pid = real_fork()
        if pid:
            forks.append(pid)
        return pid

    monkeypatch.setattr(os, "fork", fork_once)
    before = open_fds()
    supervisor = Supervisor()

    result = supervisor.run(printf("x"), cat_into(tmp_path / "a"), cat_into(tmp_path / "b"))

    assert isinstance(result, Err)
    aborted = result.err_value
    assert isinstance(aborted.cause, ForkFailed)
    assert aborted.cause.role is Role.RELAY
    assert [child.role for child in aborted.spawned] == [Role.HEAD]
    assert supervisor.state is SupervisorState.HEAD_SPAWNED
    assert open_fds() == before

    # The head dies on its broken pipe; reaping it is left to the caller
    os.waitpid(aborted.spawned[0].pid, 0)


def test_states_cannot_be_skipped():
    supervisor = Supervisor()

    with pytest.raises(RuntimeError):
        supervisor._advance(SupervisorState.HEAD_SPAWNED)


def test_exit_policy_of_no_children_is_zero():
    assert ExitPolicy.WORST.exit_code([]) == 0


def test_second_run_is_refused_before_allocating(proc_fds, tmp_path, no_children_left):
    supervisor = Supervisor()
    _run(supervisor, printf("once"), cat_into(tmp_path / "a"), cat_into(tmp_path / "b"))
    before = open_fds()

    with pytest.raises(RuntimeError):
        supervisor.run(printf("twice"), cat_into(tmp_path / "a"), cat_into(tmp_path / "b"))

    assert open_fds() == before
    assert supervisor.state is SupervisorState.DONE


def test_parent_closes_every_endpoint_once_during_cleanup(monkeypatch, tmp_path, no_children_left):
    supervisor = Supervisor()
    closed_in: list[SupervisorState] = []
    real_close = Endpoint.close

    def recording_close(self):
        if not self.closed:
            closed_in.append(supervisor.state)
        real_close(self)

    monkeypatch.setattr(Endpoint, "close", recording_close)

    _run(supervisor, printf("x"), cat_into(tmp_path / "a"), cat_into(tmp_path / "b"))

    assert closed_in == [SupervisorState.CLEANUP] * 6
