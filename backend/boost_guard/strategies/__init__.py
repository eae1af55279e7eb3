"""
Built-in boost strategies
"""
from boost_guard.strategies import fixed, proposal, whitelist


def register_builtin_strategies(registry):
    """Register every built-in strategy on `registry`"""
    registry.register(
        whitelist.NAME,
        whitelist.evaluate,
        whitelist.WhitelistParams,
        description="Fixed amount per listed recipient",
    )
    registry.register(
        fixed.NAME,
        fixed.evaluate,
        fixed.FixedParams,
        description="Same amount for every recipient",
    )
    registry.register(
        proposal.NAME,
        proposal.evaluate,
        proposal.ProposalParams,
        loader=proposal.load_facts,
        description="Reward voters of a Snapshot proposal",
    )
    return registry
