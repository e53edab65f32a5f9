from .residual_diagnostics import DiagnosticResult, DiagnosticsConfig, ResidualDiagnostics, diagnose

__all__ = [
    "DiagnosticResult",
    "DiagnosticsConfig",
    "ResidualDiagnostics",
    "diagnose",
]
