# config package — authoritative source for all curation pipeline configuration.
#
# Sub-modules:
#   api_config.py    — model service and store endpoints, credential env vars
#   model_params.py  — sampling parameters, retry ladder budgets, batch sizes
#
# System instructions are plain text files in config/prompts/, one per topic:
#   monomios.txt, binomios.txt, ...
