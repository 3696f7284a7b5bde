"""Runtime controllers: navigation, interaction, hover previews and collaborators."""
