import io

from orchestration.models import OUTLINE_PROGRESS_EVENT, OUTLINE_STREAM_EVENT
from rich.console import Console
from ui.stream_display import StreamConsoleListener


def make_listener():
    out, err = io.StringIO(), io.StringIO()
    listener = StreamConsoleListener(
        console=Console(file=out, highlight=False, soft_wrap=True),
        status_console=Console(file=err),
    )
    return listener, out, err


def test_deltas_go_to_stdout_unmodified():
    listener, out, err = make_listener()
    listener(OUTLINE_STREAM_EVENT, "### 第1章：")
    listener(OUTLINE_STREAM_EVENT, "[起航]\n")
    assert out.getvalue() == "### 第1章：[起航]\n"
    assert err.getvalue() == ""
    assert listener.delta_count == 2


def test_progress_notes_go_to_status_console():
    listener, out, err = make_listener()
    listener(OUTLINE_PROGRESS_EVENT, "正在续写第8-10章")
    assert out.getvalue() == ""
    assert "正在续写第8-10章" in err.getvalue()
    assert listener.progress_notes == ["正在续写第8-10章"]
    assert "1 continuation rounds" in listener.summary()
