"""Run Jest once or in watch mode and supervise its processes."""
