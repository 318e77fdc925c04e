import click


class AliasedGroup(click.Group):
    """Group that resolves short aliases to command names."""

    aliases = {}

    def get_command(self, ctx, cmd_name):
        cmd_name = self.aliases.get(cmd_name, cmd_name)
        return super().get_command(ctx, cmd_name)
