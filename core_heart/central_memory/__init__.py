from core_heart.central_memory.store import CentralMemory

__all__ = ["CentralMemory"]
