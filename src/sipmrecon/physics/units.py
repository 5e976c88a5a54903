# src/sipmrecon/physics/units.py
"""
Native simulation units (Geant4 convention): mm, ns, MeV.

Multiply by a unit to go into native units, divide to leave them:
    e = 2.8 * eV        # native
    e / eV              # -> 2.8
"""
mm = 1.0
cm = 10.0 * mm
um = 1.0e-3 * mm

ns = 1.0
ps = 1.0e-3 * ns

MeV = 1.0
keV = 1.0e-3 * MeV
eV = 1.0e-6 * MeV
