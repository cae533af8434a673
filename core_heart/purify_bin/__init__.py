from core_heart.purify_bin.bin import PurifyBin

__all__ = ["PurifyBin"]
