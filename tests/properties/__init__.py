"""
Property-based testing using Hypothesis.

This package contains property tests that verify mathematical invariants
hold across randomly generated inputs.

Modules:
    test_option_properties: Black-Scholes and Heston price bounds, parity
    test_payoff_properties: payoff non-negativity and dominance
    test_greeks_properties: closed-form and Monte Carlo Greek properties
    test_mc_properties: engine estimates and variance bookkeeping
    test_stream_properties: per-path random stream invariants
    test_heston_properties: Heston state validity and CIR moments
"""
