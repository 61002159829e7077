# Routes package init
"""
Stagehand - Routes Package
==========================

Only operational endpoints live here (GET /health). Business routes belong
to the application built on top of the pipeline; they dispatch requests
through PipelineDispatcher and render results with stagehand.responses.
"""
