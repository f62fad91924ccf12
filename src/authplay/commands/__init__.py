"""Built-in CLI sub-commands for authplay.

* :mod:`~authplay.commands.formulas` -- list, show and search formulas.
* :mod:`~authplay.commands.serve` -- run the relay server.
* :mod:`~authplay.commands.login` -- run a device flow in the terminal and
  try snippets with the resulting credential.

Multi-command groups export a :class:`typer.Typer` sub-application
(``formulas``); single commands export a plain callback registered
directly on the root app (``serve``, ``login``).
"""
