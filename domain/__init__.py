"""The pantry kitchen. Centres around `services`.

Recommendations and full recipes come from a language model, so most of the
work here is turning its replies into validated models. Storage, images,
entitlements and the model itself sit behind small protocols and can be faked.
"""
