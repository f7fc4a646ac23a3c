"""argparse用のカスタム型バリデーション関数."""

import argparse


def positive_int(value: str) -> int:
    """argparse用の正の整数バリデーション.

    Args:
        value (str): コマンドライン引数の文字列値

    Returns:
        int: 変換された正の整数

    Raises:
        argparse.ArgumentTypeError: 整数でないか1未満の場合
    """
    try:
        int_value = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"整数を指定してください: {value}")
    if int_value < 1:
        raise argparse.ArgumentTypeError(f"1以上の整数を指定してください: {value}")
    return int_value


def name_list(value: str) -> list:
    """カンマ区切りの名前リストを小文字のリストへ変換する."""
    names = [item.strip().lower() for item in value.split(",") if item.strip()]
    if not names:
        raise argparse.ArgumentTypeError(f"1件以上の名前を指定してください: {value!r}")
    return names
