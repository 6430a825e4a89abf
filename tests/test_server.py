import os
import signal
import threading

import pytest

from mdfeed.server import ServerOptions, main, parse_args


def test_parse_args_defaults():
    options = parse_args([])
    assert options == ServerOptions(9876, 100, False)


def test_parse_args_port_only():
    options = parse_args(["8080"])
    assert options.port == 8080
    assert options.num_symbols == 100
    assert options.from_command_line is True


def test_parse_args_port_and_symbols():
    options = parse_args(["8080", "50"])
    assert (options.port, options.num_symbols) == (8080, 50)


def test_parse_args_ignores_extra_arguments():
    assert parse_args(["8080", "50", "extra"]) == parse_args(["8080", "50"])


def test_parse_args_accepts_leading_integer():
    assert parse_args(["8080abc"]).port == 8080


@pytest.mark.parametrize("argv", [["abc"], ["8080", "xyz"], ["99999999999"]])
def test_parse_args_rejects_non_integers(argv):
    with pytest.raises(ValueError):
        parse_args(argv)


def test_parse_args_rejects_negative_symbol_count():
    with pytest.raises(ValueError):
        parse_args(["8080", "-5"])


def test_main_reports_bad_arguments(capsys):
    assert main(["not_a_port"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_main_fails_without_symbols_file(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main([]) == 1
    captured = capsys.readouterr()
    assert "Error:" in captured.err
    assert "Using default parameters" in captured.out


def test_main_runs_until_signalled(tmp_path, monkeypatch, capsys):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    symbols = config_dir / "symbols.csv"
    symbols.write_text(
        "symbol_id,symbol,price,volatility,drift\n0,SYM0,1000.0,0.02,0.01\n"
    )
    (config_dir / "server.conf").write_text(
        "server.port=0\n"
        "market.tick_rate=0\n"
        f"market.symbols_file={symbols}\n"
        "fault_injection.enabled=false\n"
    )
    monkeypatch.chdir(tmp_path)

    timer = threading.Timer(0.5, os.kill, args=(os.getpid(), signal.SIGTERM))
    timer.start()
    try:
        result = main(["0", "1"])
    finally:
        timer.cancel()

    assert result == 0
    out = capsys.readouterr().out
    assert "Using command line parameters" in out
    assert "Received signal, shutting down..." in out
    assert "Shutting down..." in out
    assert signal.getsignal(signal.SIGTERM) is not None