"""
Change notification for topmodel.

EventEmitter is a mixin giving instances on/off/emit. The ``on``
decorator registers a method as a class-level handler, so every instance
of the class (and of its subclasses) receives the event.

Example:
    from topmodel import Model, on

    class Person(Model):
        name: str

        @on('did_change')
        def remember(self):
            self.revision = getattr(self, 'revision', 0) + 1

    person = Person({'name': 'Jean'})
    person.on('did_change', lambda: print('changed'))
    person.name = 'Eric'  # prints 'changed'
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

Handler = Callable[..., Any]


def on(event: Union[str, Callable, None] = None) -> Any:
    """Decorator registering a method as a class-level event handler.

    Used bare, the event name is the method name:

        @on
        def did_change(self): ...

    or with an explicit event name:

        @on('did_change')
        def count_changes(self): ...
    """
    def decorator(func: Callable) -> Callable:
        name = event_name or func.__name__
        events = getattr(func, '__topmodel_events__', ())
        func.__topmodel_events__ = events + (name,)
        return func

    if callable(event):
        event_name = None
        return decorator(event)
    event_name = event
    return decorator


class EventEmitter:
    """Mixin providing on/off/emit to instances."""

    # event name -> names of handler methods, collected per class
    __topmodel_handlers__: Dict[str, Tuple[str, ...]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        handlers: Dict[str, List[str]] = {}
        for base in reversed(cls.__mro__[1:]):
            for name, methods in base.__dict__.get('__topmodel_handlers__', {}).items():
                for method in methods:
                    if method not in handlers.setdefault(name, []):
                        handlers[name].append(method)

        for attr_name, raw_attr in cls.__dict__.items():
            for name in getattr(raw_attr, '__topmodel_events__', ()):
                if attr_name not in handlers.setdefault(name, []):
                    handlers[name].append(attr_name)

        cls.__topmodel_handlers__ = {k: tuple(v) for k, v in handlers.items()}

    def _get_listeners(self, create: bool = False) -> Optional[Dict[str, List[Handler]]]:
        listeners = self.__dict__.get('_listeners')
        if listeners is None and create:
            listeners = {}
            self.__dict__['_listeners'] = listeners
        return listeners

    def on(self, event: str, handler: Handler) -> Handler:
        """Register ``handler`` for ``event`` on this instance only."""
        self._get_listeners(True).setdefault(event, []).append(handler)
        return handler

    def off(self, event: str, handler: Handler) -> None:
        """Remove an instance handler previously registered with on()."""
        listeners = self._get_listeners()
        if listeners and handler in listeners.get(event, ()):
            listeners[event].remove(handler)

    def emit(self, event: str, *args: Any) -> None:
        """Call class-level handlers, then instance handlers, in registration order."""
        for method in type(self).__topmodel_handlers__.get(event, ()):
            getattr(self, method)(*args)
        listeners = self._get_listeners()
        if listeners:
            for handler in list(listeners.get(event, ())):
                handler(*args)


__all__ = ["EventEmitter", "on", "Handler"]
