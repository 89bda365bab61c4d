import pytest

from kvslab.parse_log import main, parse_log


def test_window_before_first_threshold_emits_nothing():
    assert list(parse_log(["0.001 10"], iops=False)) == []


def test_bytes_and_iops_agree_for_1024_byte_ios():
    lines = ["0.01 1024"]
    assert list(parse_log(lines, iops=False)) == list(parse_log(lines, iops=True))


def test_iops_ignores_size():
    small = list(parse_log(["0.003 1", "0.2 1"], iops=True))
    large = list(parse_log(["0.003 999", "0.2 777"], iops=True))
    assert small == large
    assert small


def test_gap_is_filled_with_zero_windows():
    points = list(parse_log(["0.5 7"], iops=True))
    *zeros, last = points
    assert zeros
    assert all(value == 0 for _, value in zeros)
    times = [t for t, _ in zeros]
    assert times == sorted(times)
    assert max(times) < last[0]
    assert last == pytest.approx((0.5, 50.0))


def test_bytes_scale_with_data():
    one = list(parse_log(["0.02 2048"], iops=False))
    two = list(parse_log(["0.02 4096"], iops=False))
    assert one[-1][1] * 2 == pytest.approx(two[-1][1])


def test_counter_resets_after_each_point():
    points = list(parse_log(["0.01 1024", "0.025 1024"], iops=False))
    nonzero = [value for _, value in points if value]
    assert len(nonzero) == 2
    assert nonzero[0] == pytest.approx(nonzero[1])


def test_blank_lines_are_skipped():
    assert list(parse_log(["", "0.01 1024", "   "], iops=True)) == list(
        parse_log(["0.01 1024"], iops=True)
    )


def test_malformed_line_raises():
    with pytest.raises(ValueError):
        list(parse_log(["nonsense"], iops=False))


def test_main_prints_points(tmp_path, capsys):
    log = tmp_path / "trace.log"
    log.write_text("0.01 1024\n", encoding="utf-8")
    assert main([str(log), "0"]) == 0
    assert capsys.readouterr().out == "0.01 50\n"


def test_main_without_arguments(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().err


def test_main_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "missing.log"), "1"]) == 1
    assert "Can't open Data!" in capsys.readouterr().err