"""Activity graphs, task registries and the activity data-exchange stage."""