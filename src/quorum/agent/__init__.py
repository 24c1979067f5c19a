"""reviewer layer: selection, prompting, dispatch, normalization and on-chain fetching"""
