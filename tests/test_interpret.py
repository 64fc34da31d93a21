import os
import threading
import time

import pytest

from minish import IOConfig, ShellStatus, interpret, interpret_fmt, tokenize
from minish.exceptions import PipeError
from minish.nodes import Node, NodeKind
from minish.shell import ExecContext
from minish.shell.executor import Executor

pytestmark = pytest.mark.skipif(os.name != "posix", reason="requires POSIX userland tools")


def test_echo_is_captured():
    io = IOConfig()
    assert interpret("echo 42", io) == 0
    assert io.stdout == b"42\n"
    assert io.stderr == b""


def test_child_exit_status_is_returned():
    assert interpret("false") == 1
    assert interpret("true") == 0


def test_signal_death_maps_to_128_plus_signal():
    assert interpret("sh -c 'kill -9 $$'", IOConfig()) == 137


def test_pipeline_feeds_each_stage():
    io = IOConfig()
    assert interpret("echo hello | tr a-z A-Z", io) == 0
    assert io.stdout == b"HELLO\n"


def test_three_stage_pipeline():
    io = IOConfig()
    assert interpret("printf 'b\\na\\nc\\n' | sort | head -n 1", io) == 0
    assert io.stdout == b"a\n"


def test_pipeline_status_is_last_stage():
    assert interpret("true | false", IOConfig()) == 1
    assert interpret("false | true", IOConfig()) == 0


def test_pipeline_larger_than_pipe_buffer():
    io = IOConfig()
    assert interpret("head -c 300000 /dev/zero | cat | wc -c", io) == 0
    assert io.stdout.strip() == b"300000"


def test_output_and_input_redirection(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    io = IOConfig()
    assert interpret("echo hi > out.txt", io) == 0
    assert io.stdout == b""
    assert (tmp_path / "out.txt").read_text() == "hi\n"

    assert interpret("cat < out.txt", io) == 0
    assert io.stdout == b"hi\n"


def test_output_redirection_truncates(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "out.txt").write_text("a much longer previous content\n")
    assert interpret("echo new > out.txt", IOConfig()) == 0
    assert (tmp_path / "out.txt").read_text() == "new\n"


def test_missing_input_file_aborts_only_that_branch(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    io = IOConfig()
    assert interpret("cat < missing.txt", io) == ShellStatus.GENERIC
    assert b"missing.txt" in io.stderr

    assert interpret("cat < missing.txt ; echo after", io) == 0
    assert io.stdout == b"after\n"


def test_sequence_runs_regardless_of_left_status():
    io = IOConfig()
    assert interpret("false ; echo after", io) == 0
    assert io.stdout == b"after\n"

    assert interpret("echo a; echo b", io) == 0
    assert io.stdout == b"a\nb\n"


def test_stdin_payload_is_fed_to_child():
    io = IOConfig(stdin=b"payload")
    assert interpret("cat", io) == 0
    assert io.stdout == b"payload"


def test_large_stdin_payload_round_trips_through_cat():
    payload = bytes(range(256)) * 1000
    io = IOConfig(stdin=payload)
    assert interpret("cat", io) == 0
    assert io.stdout == payload


def test_stdin_is_closed_when_no_payload():
    io = IOConfig()
    assert interpret("wc -c", io) == 0
    assert io.stdout.strip() == b"0"


def test_stderr_is_captured_separately():
    io = IOConfig()
    assert interpret("sh -c 'echo out; echo oops 1>&2'", io) == 0
    assert io.stdout == b"out\n"
    assert io.stderr == b"oops\n"


def test_callbacks_stream_and_leave_buffers_unset():
    chunks: list[tuple[bytes, object]] = []
    marker = object()
    io = IOConfig(on_stdout=lambda chunk, data: chunks.append((chunk, data)), user_data=marker)
    assert interpret("echo streamed", io) == 0
    assert io.stdout is None
    assert io.stderr == b""
    assert b"".join(chunk for chunk, _ in chunks) == b"streamed\n"
    assert all(data is marker for _, data in chunks)


def test_stderr_callback_is_independent_of_stdout_buffer():
    errors: list[bytes] = []
    io = IOConfig(on_stderr=lambda chunk, _: errors.append(chunk))
    assert interpret("sh -c 'echo out; echo err 1>&2'", io) == 0
    assert io.stdout == b"out\n"
    assert io.stderr is None
    assert b"".join(errors) == b"err\n"


def test_unknown_program_reports_127():
    io = IOConfig()
    assert interpret("definitely-not-a-command-xyz arg", io) == 127
    assert b"command not found" in io.stderr


def test_unknown_stage_does_not_abort_pipeline():
    io = IOConfig()
    assert interpret("definitely-not-a-command-xyz | cat", io) == 0
    assert b"command not found" in io.stderr


def test_tokenize_failure_returns_tokenize_code():
    io = IOConfig()
    assert interpret('echo "unterminated', io) == ShellStatus.TOKENIZE
    assert b"unterminated quote" in io.stderr
    assert io.stdout == b""


def test_parse_failure_returns_eval_code():
    io = IOConfig()
    assert interpret("echo hi |", io) == ShellStatus.EVAL
    assert b"at byte 9" in io.stderr
    assert interpret("", io) == ShellStatus.EVAL


def test_missing_command_is_generic_failure():
    assert interpret(None) == ShellStatus.GENERIC


def test_interpret_fmt_formats_template():
    io = IOConfig()
    assert interpret_fmt("echo {} {name}", 42, name="x", io=io) == 0
    assert io.stdout == b"42 x\n"


def test_repeated_calls_are_identical():
    results = []
    for _ in range(3):
        io = IOConfig(stdin=b"same input\n")
        status = interpret("cat | tr a-z A-Z", io)
        results.append((status, io.stdout, io.stderr))
    assert results[0] == (0, b"SAME INPUT\n", b"")
    assert results.count(results[0]) == 3


def test_concurrent_calls_do_not_share_state(interpreter):
    outputs: dict[int, bytes | None] = {}

    def run(index: int) -> None:
        io = IOConfig()
        interpreter.interpret(f"echo worker-{index} | cat", io)
        outputs[index] = io.stdout

    threads = [threading.Thread(target=run, args=(index,)) for index in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert outputs == {index: f"worker-{index}\n".encode() for index in range(4)}


def test_background_job_does_not_block(interpreter):
    assert interpreter.interpret("sleep 0.3 &") == 0
    jobs = interpreter.jobs
    assert len(jobs) == 1
    assert jobs[0].argv == ["sleep", "0.3"]
    assert jobs[0].background
    assert jobs[0].wait() == 0
    assert interpreter.jobs == []


def test_background_then_foreground(interpreter):
    io = IOConfig()
    assert interpreter.interpret("true & echo fg", io) == 0
    assert io.stdout == b"fg\n"


def test_exit_raises_system_exit(interpreter):
    with pytest.raises(SystemExit) as exc:
        interpreter.interpret("exit 3")
    assert exc.value.code == 3


def test_exit_in_capture_mode_closes_descriptors(interpreter):
    fd_dir = "/proc/self/fd"
    if not os.path.isdir(fd_dir):
        pytest.skip("needs /proc")
    before = len(os.listdir(fd_dir))
    with pytest.raises(SystemExit):
        interpreter.interpret("echo bye ; exit", IOConfig())
    assert len(os.listdir(fd_dir)) == before


def test_large_builtin_output_is_captured(interpreter):
    interpreter.register_builtin("big", lambda args: "x" * 200000)
    io = IOConfig()
    assert interpreter.interpret("big", io) == 0
    assert io.stdout == b"x" * 200000

    chunks: list[bytes] = []
    io = IOConfig(on_stdout=lambda chunk, _: chunks.append(chunk))
    assert interpreter.interpret("big", io) == 0
    assert b"".join(chunks) == b"x" * 200000


def test_large_builtin_output_feeds_next_stage(interpreter, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    interpreter.register_builtin("big", lambda args: "x" * 200000)
    io = IOConfig()
    assert interpreter.interpret("big | wc -c", io) == 0
    assert io.stdout.strip() == b"200000"

    assert interpreter.interpret("big | cat > out.txt") == 0
    assert (tmp_path / "out.txt").stat().st_size == 200000


def test_builtin_output_keeps_its_place_between_children(interpreter):
    io = IOConfig()
    assert interpreter.interpret("echo before ; pwd ; echo after", io) == 0
    assert io.stdout == f"before\n{os.getcwd()}\nafter\n".encode()


def test_long_sequence_line_runs(interpreter):
    io = IOConfig()
    assert interpreter.interpret(" ; ".join(["pwd"] * 2000), io) == 0
    assert io.stdout == f"{os.getcwd()}\n".encode() * 2000


def test_pipe_failure_waits_for_started_stages(interpreter, monkeypatch):
    spawned = []
    original_spawn = interpreter.backend.spawn

    def spawn(argv, **kwargs):
        job = original_spawn(argv, **kwargs)
        spawned.append(job)
        return job

    calls = []
    original_open_pipe = Executor._open_pipe

    def open_pipe():
        calls.append(len(calls))
        if len(calls) == 2:
            raise PipeError("pipe: Too many open files")
        return original_open_pipe()

    monkeypatch.setattr(interpreter.backend, "spawn", spawn)
    monkeypatch.setattr(Executor, "_open_pipe", staticmethod(open_pipe))
    io = IOConfig()
    assert interpreter.interpret("sleep 0.2 | cat | cat", io) == ShellStatus.PIPE
    assert [job.argv for job in spawned] == [["sleep", "0.2"]]
    assert spawned[0].process.returncode == 0
    assert b"Too many open files" in io.stderr


def test_finished_background_jobs_are_reaped_without_another_call(interpreter, monkeypatch):
    tracked = []
    original_track = interpreter.track

    def track(job):
        tracked.append(job)
        original_track(job)

    monkeypatch.setattr(interpreter, "track", track)
    assert interpreter.interpret("sleep 0.1 &") == 0
    deadline = time.monotonic() + 5
    while tracked[0].process.returncode is None and time.monotonic() < deadline:
        time.sleep(0.02)
    assert tracked[0].process.returncode == 0


def test_malformed_trees_return_eval_code(interpreter, capsys):
    command = Node(NodeKind.CMD, token=tokenize("true").tokens[0])
    executor = interpreter.executor
    assert executor.execute(Node(NodeKind.PIPE, left=command), ExecContext()) == ShellStatus.EVAL
    assert executor.execute(Node(NodeKind.REDIR_OUT, right=command), ExecContext()) == ShellStatus.EVAL
    err = capsys.readouterr().err
    assert "pipe without a right-hand stage" in err
    assert "redirection without a target" in err
